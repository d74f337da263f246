from .account import AccountRepo
from .message import MessageFields, MessageRepo

__all__ = [
    "AccountRepo",
    "MessageFields",
    "MessageRepo",
]
