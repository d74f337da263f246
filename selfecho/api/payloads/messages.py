"""
Pydantic models for mailbox message endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field


class MailboxMessage(BaseModel):
    """Display-ready message record."""

    model_config = ConfigDict(populate_by_name=True)

    uid: int
    subject: str = ""
    from_: str = Field("", alias="from")
    date: str | None = Field(None, description="ISO-8601 timestamp, null when the message has no usable Date header")
    flags: list[str] = Field(default_factory=list)
    snippet: str = ""
    body: str = ""


class MessagePage(BaseModel):
    """One page of messages plus the total available for the account."""

    messages: list[MailboxMessage]
    total: int
