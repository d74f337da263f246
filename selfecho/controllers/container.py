from typing import cast

from dependency_injector import containers, providers

from selfecho.controllers.imap.connection import ConnectionManager
from selfecho.controllers.imap.message_controller import MessageController
from selfecho.controllers.imap.sync_engine import SyncEngine
from selfecho.controllers.mailbox.account_controller import AccountController
from selfecho.controllers.mailbox.mailbox_controller import MailboxController
from selfecho.repos.container import RepoContainer
from selfecho.utils.crypto import SecretVault
from selfecho.utils.list_cache import ListCache
from settings import settings


class ControllerContainer(containers.DeclarativeContainer):
    repos: RepoContainer = cast(RepoContainer, providers.DependenciesContainer())

    vault = providers.Singleton(SecretVault.from_passphrase, settings.imap.secret)
    list_cache = providers.Singleton(ListCache, ttl_seconds=settings.cache.list_ttl)

    imap_connection_manager = providers.Singleton(ConnectionManager, vault=vault)
    imap_message_controller = providers.Singleton(MessageController, connection_manager=imap_connection_manager)
    imap_sync_engine = providers.Singleton(
        SyncEngine,
        account_repo=repos.account,
        message_repo=repos.message,
        connection_manager=imap_connection_manager,
        list_cache=list_cache,
    )

    mailbox_controller = providers.Singleton(
        MailboxController,
        account_repo=repos.account,
        message_repo=repos.message,
        sync_engine=imap_sync_engine,
        message_controller=imap_message_controller,
    )
    account_controller = providers.Singleton(
        AccountController,
        account_repo=repos.account,
        vault=vault,
        list_cache=list_cache,
    )
