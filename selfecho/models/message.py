from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, CreatedAtMixin
from .decorators.types import FlagSetType


class CachedMessage(Base, CreatedAtMixin):
    """A message mirrored from a remote mailbox."""

    __tablename__ = "mail_messages"

    account_id: Mapped[int] = mapped_column(
        sa.ForeignKey("mail_accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uid: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    uid_validity: Mapped[int] = mapped_column(sa.BigInteger, nullable=False)
    subject: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    from_addr: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    msg_date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    flags: Mapped[frozenset[str]] = mapped_column(FlagSetType(), nullable=False, default=frozenset())
    body_html: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    body_plain: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")

    __table_args__ = (
        sa.UniqueConstraint("account_id", "uid", "uid_validity", name="uq_mail_message_account_uid_validity"),
        sa.Index("ix_mail_messages_account_date", "account_id", "msg_date"),
    )

    def __repr__(self) -> str:
        return f"<CachedMessage(account={self.account_id}, uid={self.uid}, uid_validity={self.uid_validity})>"
