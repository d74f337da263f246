from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from selfecho.models import MailAccount


class AccountConfig(BaseModel):
    """Detached snapshot of a mail account and its sync cursor.

    The sync engine advances ``last_uid``/``last_uid_validity`` on this object
    only after the cursor has been committed to the database.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    host: str
    port: int
    username: str
    credentials: str
    use_ssl: bool
    use_starttls: bool
    last_uid: int = 0
    last_uid_validity: int = 0

    @classmethod
    def from_account(cls, account: MailAccount) -> "AccountConfig":
        return cls.model_validate(account)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class SyncState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    MAILBOX_SELECTED = "mailbox_selected"
    FETCHING = "fetching"
    COMMITTING = "committing"
    IDLE = "idle"
    FAILED = "failed"


@dataclass(frozen=True)
class MailboxStatus:
    exists: int
    uid_validity: int


@dataclass
class FetchedMessage:
    """One FETCH result: header fields always, the raw message only for body fetches."""

    uid: int
    flags: frozenset[str] = frozenset()
    sequence: int | None = None
    subject: str = ""
    from_addr: str = ""
    date: datetime | None = None
    raw: bytes | None = None


@dataclass
class SyncResult:
    account_id: int
    uid_validity: int
    last_uid: int
    new_uids: list[int] = field(default_factory=list)
    reset: bool = False

    @property
    def new_messages(self) -> int:
        return len(self.new_uids)
