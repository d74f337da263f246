import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from aioimaplib import IMAP4, IMAP4_SSL

from selfecho.controllers.imap.models import AccountConfig, SyncState
from selfecho.controllers.imap.session import MailboxSession
from selfecho.exceptions import DecryptError, MailboxAuthError, MailboxConnectionError, MailboxError
from selfecho.utils.crypto import SecretVault
from settings import settings

ClientFactory = Callable[[AccountConfig], IMAP4]
StateCallback = Callable[[SyncState], None]


def default_client_factory(account: AccountConfig) -> IMAP4:
    if account.use_ssl:
        return IMAP4_SSL(host=account.host, port=account.port, timeout=settings.imap.timeout)
    return IMAP4(host=account.host, port=account.port, timeout=settings.imap.timeout)


class ConnectionManager:
    """Opens authenticated IMAP sessions for stored accounts.

    There is no pooling: every sync or live fetch gets a fresh session that is
    logged out when its scope ends.
    """

    def __init__(self, vault: SecretVault, client_factory: ClientFactory | None = None) -> None:
        self._logger = logging.getLogger(__name__)
        self._vault = vault
        self._client_factory = client_factory or default_client_factory

    @asynccontextmanager
    async def open_session(
        self, account: AccountConfig, on_state: StateCallback | None = None
    ) -> AsyncIterator[MailboxSession]:
        """Connect, authenticate and yield a session; always logs out afterwards."""
        session = await self.connect(account, on_state)
        try:
            yield session
        finally:
            await self.close_session(session, account)

    async def connect(self, account: AccountConfig, on_state: StateCallback | None = None) -> MailboxSession:
        try:
            password = self._vault.decrypt_secret(account.credentials)
        except DecryptError as e:
            raise MailboxConnectionError(
                f"Stored credentials for {account.username} could not be decrypted", account_id=account.id
            ) from e

        client = self._client_factory(account)
        try:
            await client.wait_hello_from_server()
            if on_state is not None:
                on_state(SyncState.CONNECTED)
            if not account.use_ssl and account.use_starttls:
                self._logger.debug(f"Upgrading {account.address} via STARTTLS")
                await client.starttls()

            response = await client.login(account.username, password)
            if response.result != "OK":
                raise MailboxAuthError(
                    f"Failed to login to {account.address} for {account.username}: {response.result}",
                    account_id=account.id,
                )
        except MailboxError:
            self._abort(client)
            raise
        except (asyncio.TimeoutError, OSError) as e:
            self._abort(client)
            raise MailboxConnectionError(
                f"Failed to connect to {account.address} for {account.username}: {e!r}", account_id=account.id
            ) from e
        except Exception as e:
            self._abort(client)
            self._logger.error(f"Failed to create IMAP connection for {account.username}: {e}")
            raise MailboxConnectionError(
                f"IMAP handshake with {account.address} failed: {e!r}", account_id=account.id
            ) from e

        if on_state is not None:
            on_state(SyncState.AUTHENTICATED)
        self._logger.debug(f"Created new IMAP connection for {account.username}@{account.address}")
        return MailboxSession(client, account.username)

    async def close_session(self, session: MailboxSession, account: AccountConfig) -> None:
        """Log out, forcing the transport closed when LOGOUT hangs."""
        try:
            await asyncio.wait_for(session.logout(), timeout=settings.imap.logout_timeout)
            self._logger.debug(f"Closed connection for {account.username}")
        except asyncio.TimeoutError:
            self._logger.warning(f"Timeout closing connection for {account.username}, forcing close")
            session.abort()
        except Exception as e:
            self._logger.warning(f"Error closing connection for {account.username}: {e}")
            session.abort()

    def _abort(self, client: IMAP4) -> None:
        try:
            MailboxSession(client, "").abort()
        except Exception as e:
            self._logger.debug(f"Error dropping half-open connection: {e}")
