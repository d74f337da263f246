import enum
from http import HTTPStatus
from typing import Any


class ErrorType(enum.Enum):
    DECODE_ERROR = "decode_error"
    DECRYPT_ERROR = "decrypt_error"
    ENTITY_NOT_FOUND = "entity_not_found"
    INVALID_DATA = "invalid_data"
    MAILBOX_AUTH = "mailbox_auth"
    MAILBOX_CONNECTION = "mailbox_connection"
    MAILBOX_PROTOCOL = "mailbox_protocol"
    MAILBOX_UNAVAILABLE = "mailbox_unavailable"
    UNHANDLED_EXCEPTION = "unhandled_exception"
    UNSPECIFIED = "unspecified"


class BaseError(Exception):
    extra: dict[str, Any]

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.UNSPECIFIED,
        status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.extra = {}

        account_id = kwargs.get("account_id")
        if account_id is not None:
            self.extra["account_id"] = account_id
        uid = kwargs.get("uid")
        if uid is not None:
            self.extra["uid"] = uid

    def __str__(self) -> str:
        return f"error: {self.error_type.value}; description: {self.message}"


class EntityNotFoundError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.ENTITY_NOT_FOUND,
        status_code: HTTPStatus = HTTPStatus.NOT_FOUND,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class InvalidDataError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INVALID_DATA,
        status_code: HTTPStatus = HTTPStatus.BAD_REQUEST,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class DecryptError(BaseError):
    """A stored secret could not be decrypted with the configured key."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.DECRYPT_ERROR,
        status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class DecodeError(BaseError):
    """A message body could not be parsed. Never leaves the MIME decoder."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.DECODE_ERROR,
        status_code: HTTPStatus = HTTPStatus.UNPROCESSABLE_ENTITY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class MailboxError(BaseError):
    """Base class for failures talking to the remote mailbox."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.MAILBOX_CONNECTION,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class MailboxConnectionError(MailboxError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.MAILBOX_CONNECTION,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class MailboxAuthError(MailboxError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.MAILBOX_AUTH,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class MailboxProtocolError(MailboxError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.MAILBOX_PROTOCOL,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class MailboxUnavailableError(BaseError):
    """Cache, synchronous refresh and live fetch all failed for a read."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.MAILBOX_UNAVAILABLE,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)
