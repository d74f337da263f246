import os

os.environ["SELFECHO_ENV"] = "test"

from typing import AsyncIterator  # noqa: E402

import pytest  # noqa: E402
from fastapi_async_sqlalchemy import db  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine  # noqa: E402

from selfecho.controllers.imap.connection import ConnectionManager  # noqa: E402
from selfecho.controllers.imap.message_controller import MessageController  # noqa: E402
from selfecho.controllers.imap.models import AccountConfig  # noqa: E402
from selfecho.controllers.imap.sync_engine import SyncEngine  # noqa: E402
from selfecho.db import init_sqlalchemy  # noqa: E402
from selfecho.models import Base, MailAccount  # noqa: E402
from selfecho.repos.account import AccountRepo  # noqa: E402
from selfecho.repos.message import MessageRepo  # noqa: E402
from selfecho.utils.crypto import SecretVault  # noqa: E402
from selfecho.utils.list_cache import ListCache  # noqa: E402
from tests.fakes import FakeMailbox, client_factory_for  # noqa: E402


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'selfecho.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[None]:
    """A fastapi_async_sqlalchemy session bound to the temporary database."""
    init_sqlalchemy(engine)
    async with db():
        yield


@pytest.fixture
def vault() -> SecretVault:
    return SecretVault.from_passphrase("selfecho-test-secret")


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox(uid_validity=1, password="hunter2")


@pytest.fixture
def account_repo() -> AccountRepo:
    return AccountRepo()


@pytest.fixture
def message_repo() -> MessageRepo:
    return MessageRepo()


@pytest.fixture
def connection_manager(vault: SecretVault, mailbox: FakeMailbox) -> ConnectionManager:
    return ConnectionManager(vault, client_factory=client_factory_for(mailbox))


@pytest.fixture
def list_cache() -> ListCache:
    return ListCache(ttl_seconds=30)


@pytest.fixture
def sync_engine(
    account_repo: AccountRepo,
    message_repo: MessageRepo,
    connection_manager: ConnectionManager,
    list_cache: ListCache,
) -> SyncEngine:
    return SyncEngine(
        account_repo=account_repo,
        message_repo=message_repo,
        connection_manager=connection_manager,
        list_cache=list_cache,
    )


@pytest.fixture
def message_controller(connection_manager: ConnectionManager) -> MessageController:
    return MessageController(connection_manager)


@pytest.fixture
async def stored_account(db_session: None, account_repo: AccountRepo, vault: SecretVault) -> MailAccount:
    account = MailAccount(
        host="imap.example.com",
        port=993,
        username="me@example.com",
        credentials=vault.encrypt_secret("hunter2"),
        use_ssl=True,
        use_starttls=False,
    )
    await account_repo.add(account, commit=True)
    return account


@pytest.fixture
def account_config(stored_account: MailAccount) -> AccountConfig:
    return AccountConfig.from_account(stored_account)
