import logging

from selfecho.api.payloads.messages import MailboxMessage
from selfecho.controllers.imap.connection import ConnectionManager
from selfecho.controllers.imap.models import AccountConfig, FetchedMessage
from selfecho.utils.mime import MimeDecoder, safe_text
from settings import settings

SNIPPET_LENGTH = 100


def snippet_of(text: str) -> str:
    return " ".join(text.split())[:SNIPPET_LENGTH]


class MessageController:
    """Reads messages straight from the IMAP server, bypassing the cache.

    Nothing fetched here is persisted.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self._logger = logging.getLogger(__name__)
        self._connection_manager = connection_manager

    async def list_messages(
        self, account: AccountConfig, limit: int, offset: int = 0
    ) -> tuple[list[MailboxMessage], int]:
        """Newest ``offset + limit`` summaries, sliced to the requested page.

        Returns the page and the mailbox message count. Bodies are left empty.
        """
        async with self._connection_manager.open_session(account) as session:
            status = await session.select_readonly(settings.imap.mailbox)
            if status.exists == 0:
                return [], 0

            first = max(1, status.exists - (offset + limit) + 1)
            summaries = await session.fetch_summaries(first, status.exists)

        summaries.sort(key=lambda m: (m.sequence or 0, m.uid), reverse=True)
        page = summaries[offset : offset + limit]
        self._logger.debug(f"Live list for account {account.id}: {len(page)} of {status.exists} messages")
        return [self._to_mailbox_message(summary) for summary in page], status.exists

    async def get_message(self, account: AccountConfig, uid: int) -> MailboxMessage | None:
        """Fetch and decode one message by UID; None when the UID does not exist."""
        async with self._connection_manager.open_session(account) as session:
            await session.select_readonly(settings.imap.mailbox)
            fetched = await session.fetch_message(uid)

        if fetched is None:
            self._logger.info(f"UID {uid} not found on server for account {account.id}")
            return None

        decoded = MimeDecoder.decode_body(fetched.raw)
        return self._to_mailbox_message(fetched, body=decoded.body, plain=decoded.plain)

    @staticmethod
    def _to_mailbox_message(message: FetchedMessage, body: str = "", plain: str = "") -> MailboxMessage:
        return MailboxMessage(
            uid=message.uid,
            subject=safe_text(message.subject),
            from_=safe_text(message.from_addr),
            date=message.date.isoformat() if message.date else None,
            flags=sorted(message.flags),
            snippet=snippet_of(plain),
            body=body,
        )
