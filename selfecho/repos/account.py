from typing import Any, Sequence

from sqlalchemy import func, select, update

from selfecho.models import MailAccount
from selfecho.repos.base import BaseRepo


class AccountRepo(BaseRepo[MailAccount]):
    """Repository for MailAccount model operations."""

    def __init__(self) -> None:
        super().__init__(MailAccount)

    async def get(self, id: Any) -> MailAccount | None:
        """Get an account by ID, reloading the cursor columns written by core UPDATEs."""
        return await self.session.get(MailAccount, id, populate_existing=True)

    async def get_latest(self) -> MailAccount | None:
        """Get the most recently registered account."""
        result = await self.execute(
            self.base_stmt.order_by(MailAccount.created_at.desc(), MailAccount.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.one_or_none()

    async def list_page(self, limit: int, offset: int) -> Sequence[MailAccount]:
        """List accounts, newest first."""
        result = await self.execute(
            self.base_stmt.order_by(MailAccount.created_at.desc(), MailAccount.id.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        return result.all()

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(MailAccount))
        return int(result.scalar_one())

    async def update_cursor(self, account_id: int, last_uid: int, last_uid_validity: int) -> None:
        """Write the sync watermark. Callers own the transaction."""
        await self.session.execute(
            update(MailAccount)
            .where(MailAccount.id == account_id)
            .values(last_uid=last_uid, last_uid_validity=last_uid_validity, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )

    async def update_credentials(self, account_id: int, credentials: str) -> bool:
        """Replace the encrypted secret; returns False when the account does not exist."""
        result = await self.session.execute(
            update(MailAccount)
            .where(MailAccount.id == account_id)
            .values(credentials=credentials, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)
