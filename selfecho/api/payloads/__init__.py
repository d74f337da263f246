"""
API payloads package for Pydantic response/request models.
"""

from .accounts import AccountListItem, CreateAccountRequest, CreateAccountResponse, UpdateCredentialsRequest
from .error import APIError
from .health import HealthResponse
from .messages import MailboxMessage, MessagePage

__all__ = [
    "APIError",
    "AccountListItem",
    "CreateAccountRequest",
    "CreateAccountResponse",
    "HealthResponse",
    "MailboxMessage",
    "MessagePage",
    "UpdateCredentialsRequest",
]
