import asyncio
import logging

from fastapi_async_sqlalchemy import db

from selfecho.api.payloads.messages import MailboxMessage, MessagePage
from selfecho.controllers.imap.message_controller import MessageController, snippet_of
from selfecho.controllers.imap.models import AccountConfig
from selfecho.controllers.imap.sync_engine import SyncEngine
from selfecho.exceptions import EntityNotFoundError, MailboxUnavailableError
from selfecho.models import CachedMessage
from selfecho.repos.account import AccountRepo
from selfecho.repos.message import MessageRepo
from selfecho.utils.mime import escape_text
from settings import settings


def to_mailbox_message(row: CachedMessage) -> MailboxMessage:
    return MailboxMessage(
        uid=row.uid,
        subject=row.subject,
        from_=row.from_addr,
        date=row.msg_date.isoformat() if row.msg_date else None,
        flags=sorted(row.flags or ()),
        snippet=snippet_of(row.body_plain),
        body=row.body_html or escape_text(row.body_plain),
    )


class MailboxController:
    """Serves mailbox reads from the cache, falling back to sync and then to a live fetch.

    1. Cache hit: return it and refresh the account in the background.
    2. Miss: sync synchronously and read the cache again.
    3. Still nothing: fetch from the server without persisting.
    """

    def __init__(
        self,
        account_repo: AccountRepo,
        message_repo: MessageRepo,
        sync_engine: SyncEngine,
        message_controller: MessageController,
    ):
        self._logger = logging.getLogger(__name__)
        self._account_repo = account_repo
        self._message_repo = message_repo
        self._sync_engine = sync_engine
        self._message_controller = message_controller
        self._active_refreshes: dict[int, asyncio.Task[None]] = {}  # account id -> task

    async def list_messages(self, account_id: int | None, limit: int, offset: int = 0) -> MessagePage:
        """A page of messages, newest first; ``account_id=None`` uses the latest account."""
        account = await self._resolve_account(account_id)

        page = await self._read_page(account.id, limit, offset)
        if page.messages:
            self._schedule_refresh(account.id)
            return page

        sync_error: Exception | None = None
        try:
            await self._sync_engine.sync(account, settings.imap.list_sync_limit)
            page = await self._read_page(account.id, limit, offset)
            if page.messages:
                return page
        except Exception as e:
            self._logger.warning(f"Synchronous sync failed for account {account.id}, trying live fetch: {e}")
            sync_error = e

        try:
            messages, total = await self._message_controller.list_messages(account, limit, offset)
        except Exception as e:
            if sync_error is None:
                self._logger.warning(f"Live list failed for account {account.id} after a successful sync: {e}")
                return page
            raise MailboxUnavailableError(
                f"Mailbox unavailable for account {account.id}: {e}", account_id=account.id
            ) from e
        return MessagePage(messages=messages, total=total)

    async def get_message(self, account_id: int | None, uid: int) -> MailboxMessage:
        """One message by UID, with the same tiers as list_messages."""
        account = await self._resolve_account(account_id)

        try:
            row = await self._message_repo.get_by_uid(account.id, uid, account.last_uid_validity or None)
        except EntityNotFoundError:
            self._logger.debug(f"UID {uid} not cached for account {account.id}")
        else:
            self._schedule_refresh(account.id)
            return to_mailbox_message(row)

        try:
            await self._sync_engine.sync(account, settings.imap.detail_sync_limit)
            row = await self._message_repo.get_by_uid(account.id, uid, account.last_uid_validity or None)
            return to_mailbox_message(row)
        except EntityNotFoundError:
            self._logger.debug(f"UID {uid} still not cached for account {account.id} after sync")
        except Exception as e:
            self._logger.warning(f"Synchronous sync failed for account {account.id}, trying live fetch: {e}")

        try:
            message = await self._message_controller.get_message(account, uid)
        except Exception as e:
            raise MailboxUnavailableError(
                f"Mailbox unavailable for account {account.id}: {e}", account_id=account.id, uid=uid
            ) from e

        if message is None:
            raise EntityNotFoundError("Message not found", account_id=account.id, uid=uid)
        return message

    async def shutdown(self) -> None:
        """Cancel background refreshes and wait for them to unwind."""
        tasks_to_cancel = [task for task in self._active_refreshes.values() if not task.done()]
        self._active_refreshes.clear()

        for task in tasks_to_cancel:
            task.cancel()

        if tasks_to_cancel:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*tasks_to_cancel, return_exceptions=True),
                    timeout=settings.imap.shutdown_timeout,
                )
            except asyncio.TimeoutError:
                self._logger.warning("Timeout waiting for background refreshes to cancel")

        self._logger.info(f"Stopped {len(tasks_to_cancel)} background refreshes")

    def stats(self) -> dict[str, int]:
        return {"background_refreshes": sum(1 for task in self._active_refreshes.values() if not task.done())}

    async def _resolve_account(self, account_id: int | None) -> AccountConfig:
        if account_id is None:
            account = await self._account_repo.get_latest()
        else:
            account = await self._account_repo.get(account_id)
        if account is None:
            raise EntityNotFoundError("IMAP account not found", account_id=account_id)
        return AccountConfig.from_account(account)

    async def _read_page(self, account_id: int, limit: int, offset: int) -> MessagePage:
        rows = await self._message_repo.list_recent(account_id, limit, offset)
        total = await self._message_repo.count(account_id)
        return MessagePage(messages=[to_mailbox_message(row) for row in rows], total=total)

    def _schedule_refresh(self, account_id: int) -> None:
        current = self._active_refreshes.get(account_id)
        if current is not None and not current.done():
            self._logger.debug(f"Background refresh already running for account {account_id}")
            return

        task = asyncio.create_task(self._refresh(account_id))
        self._active_refreshes[account_id] = task
        task.add_done_callback(lambda done: self._forget_refresh(account_id, done))

    def _forget_refresh(self, account_id: int, task: asyncio.Task[None]) -> None:
        if self._active_refreshes.get(account_id) is task:
            self._active_refreshes.pop(account_id, None)

    async def _refresh(self, account_id: int) -> None:
        """Sync one account in its own DB session; the outcome is only logged."""
        try:
            async with db():
                account = await self._account_repo.get(account_id)
                if account is None:
                    self._logger.info(f"Account {account_id} disappeared before background refresh")
                    return
                config = AccountConfig.from_account(account)
                result = await asyncio.wait_for(
                    self._sync_engine.sync(config, settings.imap.list_sync_limit),
                    timeout=settings.imap.refresh_timeout,
                )
            self._logger.debug(f"Background refresh for account {account_id}: {result.new_messages} new messages")
        except asyncio.TimeoutError:
            self._logger.warning(f"Background refresh for account {account_id} timed out")
        except Exception as e:
            self._logger.warning(f"Background refresh for account {account_id} failed: {e}")
