import logging

from selfecho.api.payloads.accounts import AccountListItem, TLSMode
from selfecho.exceptions import EntityNotFoundError, InvalidDataError
from selfecho.models import MailAccount
from selfecho.repos.account import AccountRepo
from selfecho.utils.crypto import SecretVault
from selfecho.utils.list_cache import ListCache, ListCacheKey

DEFAULT_IMAP_PORT = 993
ACCOUNT_LIST_STATUS = "accounts"


class AccountController:
    """Registers mail accounts and keeps their encrypted credentials current."""

    def __init__(self, account_repo: AccountRepo, vault: SecretVault, list_cache: ListCache):
        self._logger = logging.getLogger(__name__)
        self._account_repo = account_repo
        self._vault = vault
        self._list_cache = list_cache

    async def register_account(
        self, host: str, port: int | None, username: str, password: str, tls_mode: TLSMode = TLSMode.SSL
    ) -> int:
        """Store a new account with its password encrypted; returns the account id."""
        host = (host or "").strip()
        username = (username or "").strip()
        if not host or not username or not password:
            raise InvalidDataError("host, username and password are required")
        if not port:
            port = DEFAULT_IMAP_PORT
        if not 0 < port < 65536:
            raise InvalidDataError(f"Invalid port: {port}")

        account = MailAccount(
            host=host,
            port=port,
            username=username,
            credentials=self._vault.encrypt_secret(password),
            use_ssl=tls_mode == TLSMode.SSL,
            use_starttls=tls_mode == TLSMode.STARTTLS,
        )
        await self._account_repo.add(account)
        account_id = account.id
        await self._account_repo.commit()
        self._list_cache.invalidate_all()

        self._logger.info(f"Registered IMAP account {account_id} for {username}@{host}:{port} ({tls_mode.value})")
        return account_id

    async def list_accounts(self, page: int = 1, limit: int = 50) -> tuple[list[AccountListItem], int]:
        """Accounts newest first, without secrets."""
        key = ListCacheKey(status=ACCOUNT_LIST_STATUS, archive="", page=page, limit=limit, compact=False)
        cached = self._list_cache.get(key)
        if cached is not None:
            return list(cached.items), cached.total

        accounts = await self._account_repo.list_page(limit=limit, offset=(page - 1) * limit)
        total = await self._account_repo.count()
        items = [AccountListItem.model_validate(account) for account in accounts]
        self._list_cache.set(key, items, total)
        return items, total

    async def update_credentials(self, account_id: int, password: str) -> None:
        """Replace the stored password. The sync cursor is kept since the mailbox is the same."""
        if not password:
            raise InvalidDataError("password is required", account_id=account_id)

        updated = await self._account_repo.update_credentials(account_id, self._vault.encrypt_secret(password))
        if not updated:
            raise EntityNotFoundError("IMAP account not found", account_id=account_id)
        await self._account_repo.commit()
        self._list_cache.invalidate_all()

        self._logger.info(f"Credentials changed for IMAP account {account_id}")
