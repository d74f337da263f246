import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class MailAccount(Base, TimestampMixin):
    """A remote IMAP mailbox plus its synchronization cursor."""

    __tablename__ = "mail_accounts"

    host: Mapped[str] = mapped_column(sa.String(255), nullable=False, index=True)
    port: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default=sa.text("993"))
    username: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    credentials: Mapped[str] = mapped_column(sa.Text, nullable=False, comment="Encrypted password")
    use_ssl: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.true())
    use_starttls: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.false())
    # The watermark is only meaningful relative to the UIDVALIDITY it was recorded under.
    last_uid: Mapped[int] = mapped_column(sa.BigInteger, nullable=False, default=0, server_default=sa.text("0"))
    last_uid_validity: Mapped[int] = mapped_column(
        sa.BigInteger, nullable=False, default=0, server_default=sa.text("0")
    )

    def __repr__(self) -> str:
        return f"<MailAccount(username='{self.username}', host='{self.host}', last_uid={self.last_uid})>"
