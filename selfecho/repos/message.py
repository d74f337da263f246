from datetime import datetime
from typing import Any, Sequence, TypedDict

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from selfecho.exceptions import EntityNotFoundError
from selfecho.models import CachedMessage
from selfecho.repos.base import BaseRepo

UPSERT_KEY = ("account_id", "uid", "uid_validity")


class MessageFields(TypedDict):
    subject: str
    from_addr: str
    msg_date: datetime | None
    flags: frozenset[str]
    body_html: str
    body_plain: str


class MessageRepo(BaseRepo[CachedMessage]):
    """Persisted message cache keyed by (account_id, uid, uid_validity)."""

    def __init__(self) -> None:
        super().__init__(CachedMessage)

    async def upsert(self, account_id: int, uid: int, uid_validity: int, fields: MessageFields) -> None:
        """Insert a message or overwrite the row with the same key."""
        values: dict[str, Any] = {"account_id": account_id, "uid": uid, "uid_validity": uid_validity, **fields}
        insert = postgresql_insert if self.dialect_name == "postgresql" else sqlite_insert
        stmt = insert(CachedMessage).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(UPSERT_KEY),
            set_={name: stmt.excluded[name] for name in fields},
        )
        await self.session.execute(stmt)

    async def list_recent(self, account_id: int, limit: int, offset: int = 0) -> Sequence[CachedMessage]:
        """Newest first by message date; undated messages go last."""
        result = await self.execute(
            self.base_stmt.where(CachedMessage.account_id == account_id)
            .order_by(CachedMessage.msg_date.desc().nulls_last(), CachedMessage.uid.desc())
            .limit(limit)
            .offset(offset)
        )
        return result.all()

    async def count(self, account_id: int) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(CachedMessage).where(CachedMessage.account_id == account_id)
        )
        return int(result.scalar_one())

    async def get_by_uid(self, account_id: int, uid: int, uid_validity: int | None = None) -> CachedMessage:
        """Get a cached message, raising EntityNotFoundError when it is not cached."""
        query = self.base_stmt.where(CachedMessage.account_id == account_id, CachedMessage.uid == uid)
        if uid_validity:
            query = query.where(CachedMessage.uid_validity == uid_validity)
        result = await self.execute(query.order_by(CachedMessage.uid_validity.desc()).limit(1))
        message = result.one_or_none()
        if message is None:
            raise EntityNotFoundError("Message not found in cache", account_id=account_id, uid=uid)
        return message

    async def delete_all_by_account(self, account_id: int) -> int:
        """Delete every cached message of an account; returns the number of rows removed."""
        result = await self.session.execute(delete(CachedMessage).where(CachedMessage.account_id == account_id))
        return int(result.rowcount or 0)
