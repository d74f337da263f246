from dependency_injector import containers, providers

from selfecho.repos.account import AccountRepo
from selfecho.repos.message import MessageRepo


class RepoContainer(containers.DeclarativeContainer):
    account = providers.Singleton(AccountRepo)
    message = providers.Singleton(MessageRepo)
