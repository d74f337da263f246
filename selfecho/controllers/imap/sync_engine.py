import logging

from selfecho.controllers.imap.connection import ConnectionManager
from selfecho.controllers.imap.models import AccountConfig, FetchedMessage, MailboxStatus, SyncResult, SyncState
from selfecho.controllers.imap.session import MailboxSession
from selfecho.repos.account import AccountRepo
from selfecho.repos.message import MessageFields, MessageRepo
from selfecho.utils.list_cache import ListCache
from selfecho.utils.mime import MimeDecoder, safe_text
from settings import settings


class SyncEngine:
    """Mirrors the newest window of a remote mailbox into the message cache.

    The cursor ``(last_uid, last_uid_validity)`` is advanced in the same
    transaction as the rows it covers. A failed sync leaves both the stored and
    the in-memory cursor untouched.
    """

    def __init__(
        self,
        account_repo: AccountRepo,
        message_repo: MessageRepo,
        connection_manager: ConnectionManager,
        list_cache: ListCache,
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._account_repo = account_repo
        self._message_repo = message_repo
        self._connection_manager = connection_manager
        self._list_cache = list_cache

    async def sync(self, account: AccountConfig, limit: int) -> SyncResult:
        """Fetch up to ``limit`` of the newest messages and persist the unseen ones."""
        run = _SyncRun(account.id, self._logger)
        try:
            async with self._connection_manager.open_session(account, on_state=run.advance) as session:
                status = await session.select_readonly(settings.imap.mailbox)
                run.advance(SyncState.MAILBOX_SELECTED)

                if status.exists == 0:
                    run.advance(SyncState.COMMITTING)
                    result = await self._reset_empty(account, status)
                    run.advance(SyncState.IDLE)
                    return result

                rollover = account.last_uid_validity != 0 and account.last_uid_validity != status.uid_validity
                watermark = 0 if rollover else account.last_uid
                if rollover:
                    self._logger.info(
                        f"UIDVALIDITY changed for account {account.id}: "
                        f"{account.last_uid_validity} -> {status.uid_validity}, dropping cached messages"
                    )

                run.advance(SyncState.FETCHING)
                messages = await self._fetch_new(session, status, watermark, limit)

            run.advance(SyncState.COMMITTING)
            result = await self._commit(account, status, watermark, messages, rollover)
            run.advance(SyncState.IDLE)
            return result
        except Exception as e:
            failed_in = run.state
            run.advance(SyncState.FAILED)
            self._logger.warning(
                f"Sync failed for account {account.id} ({account.address}) in state {failed_in.value}: {e}"
            )
            raise

    async def _fetch_new(
        self, session: MailboxSession, status: MailboxStatus, watermark: int, limit: int
    ) -> list[tuple[FetchedMessage, FetchedMessage | None]]:
        first = max(1, status.exists - limit + 1)
        summaries = await session.fetch_summaries(first, status.exists)
        new = sorted((summary for summary in summaries if summary.uid > watermark), key=lambda m: m.uid)
        if not new:
            self._logger.debug(f"No new messages above UID {watermark}")
            return []

        self._logger.debug(f"Found {len(new)} new messages above UID {watermark}")
        fetched: list[tuple[FetchedMessage, FetchedMessage | None]] = []
        for summary in new:
            detail = await session.fetch_message(summary.uid)
            if detail is None or detail.raw is None:
                self._logger.warning(f"Server returned no body for UID {summary.uid}, storing headers only")
            fetched.append((summary, detail))
        return fetched

    async def _reset_empty(self, account: AccountConfig, status: MailboxStatus) -> SyncResult:
        try:
            removed = await self._message_repo.delete_all_by_account(account.id)
            await self._account_repo.update_cursor(account.id, 0, status.uid_validity)
            await self._account_repo.commit()
        except Exception:
            await self._account_repo.rollback()
            raise

        # Account listings carry the cursor.
        self._list_cache.invalidate_all()

        account.last_uid = 0
        account.last_uid_validity = status.uid_validity
        self._logger.info(f"Mailbox empty for account {account.id}; cleared {removed} cached messages")
        return SyncResult(account_id=account.id, uid_validity=status.uid_validity, last_uid=0, reset=True)

    async def _commit(
        self,
        account: AccountConfig,
        status: MailboxStatus,
        watermark: int,
        messages: list[tuple[FetchedMessage, FetchedMessage | None]],
        rollover: bool,
    ) -> SyncResult:
        new_uids = [summary.uid for summary, _ in messages]
        last_uid = max([watermark, *new_uids])
        try:
            if rollover:
                removed = await self._message_repo.delete_all_by_account(account.id)
                self._logger.debug(f"Removed {removed} messages from the previous epoch")
            for summary, detail in messages:
                fields = build_fields(summary, detail)
                await self._message_repo.upsert(account.id, summary.uid, status.uid_validity, fields)
            await self._account_repo.update_cursor(account.id, last_uid, status.uid_validity)
            await self._account_repo.commit()
        except Exception:
            await self._account_repo.rollback()
            raise

        # Account listings carry the cursor.
        self._list_cache.invalidate_all()

        account.last_uid = last_uid
        account.last_uid_validity = status.uid_validity
        if new_uids:
            self._logger.info(f"Synced {len(new_uids)} new messages for account {account.id}; last UID {last_uid}")
        return SyncResult(
            account_id=account.id,
            uid_validity=status.uid_validity,
            last_uid=last_uid,
            new_uids=new_uids,
            reset=rollover,
        )


class _SyncRun:
    def __init__(self, account_id: int, logger: logging.Logger) -> None:
        self._account_id = account_id
        self._logger = logger
        self.state = SyncState.DISCONNECTED

    def advance(self, new: SyncState) -> None:
        self._logger.debug(f"Account {self._account_id} sync: {self.state.value} -> {new.value}")
        self.state = new


def build_fields(summary: FetchedMessage, detail: FetchedMessage | None) -> MessageFields:
    """Row values for one message; header fields come from the summary fetch."""
    decoded = MimeDecoder.decode_body(detail.raw if detail is not None else None)
    flags = detail.flags if detail is not None and detail.flags else summary.flags
    return MessageFields(
        subject=safe_text(summary.subject or (detail.subject if detail is not None else "")),
        from_addr=safe_text(summary.from_addr or (detail.from_addr if detail is not None else "")),
        msg_date=summary.date or (detail.date if detail is not None else None),
        flags=frozenset(safe_text(flag) for flag in flags),
        body_html=decoded.body,
        body_plain=decoded.plain,
    )
