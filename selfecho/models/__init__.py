from .account import MailAccount
from .base import Base
from .message import CachedMessage

__all__ = [
    "Base",
    "CachedMessage",
    "MailAccount",
]
