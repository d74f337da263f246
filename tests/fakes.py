"""In-memory IMAP server double speaking aioimaplib's Response shapes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime

from aioimaplib import Response

from selfecho.controllers.imap.models import AccountConfig

SUMMARY_FIELDS = (b"subject:", b"from:", b"date:")


def build_raw(
    subject: str,
    body: str = "Hello",
    sender: str = "Alice <alice@example.com>",
    date: datetime | None = None,
    content_type: str = "text/plain; charset=utf-8",
) -> bytes:
    date = date or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    headers = (
        f"Subject: {subject}\r\n"
        f"From: {sender}\r\n"
        f"Date: {format_datetime(date)}\r\n"
        f"MIME-Version: 1.0\r\n"
        f"Content-Type: {content_type}\r\n"
    )
    return headers.encode() + b"\r\n" + body.encode()


def header_block(raw: bytes) -> bytes:
    head = raw.split(b"\r\n\r\n", 1)[0]
    kept = [line for line in head.split(b"\r\n") if line.lower().startswith(SUMMARY_FIELDS)]
    return b"\r\n".join(kept) + b"\r\n\r\n"


@dataclass
class FakeMessage:
    uid: int
    raw: bytes
    flags: tuple[str, ...] = ()


@dataclass
class FakeMailbox:
    uid_validity: int = 1
    password: str = "hunter2"
    messages: list[FakeMessage] = field(default_factory=list)
    missing_bodies: set[int] = field(default_factory=set)
    fail_command: str | None = None
    next_uid: int = 1
    connections: int = 0
    logouts: int = 0
    aborts: int = 0
    starttls_calls: int = 0
    detail_fetches: list[int] = field(default_factory=list)

    def add(self, subject: str, body: str = "Hello", flags: tuple[str, ...] = (), **kwargs) -> int:
        uid = self.next_uid
        self.next_uid += 1
        self.messages.append(FakeMessage(uid=uid, raw=build_raw(subject, body, **kwargs), flags=flags))
        return uid

    def add_raw(self, raw: bytes, flags: tuple[str, ...] = ()) -> int:
        uid = self.next_uid
        self.next_uid += 1
        self.messages.append(FakeMessage(uid=uid, raw=raw, flags=flags))
        return uid

    def renumber(self, uid_validity: int) -> None:
        """Simulate a mailbox rebuild: new epoch, UIDs restart at 1."""
        self.uid_validity = uid_validity
        self.next_uid = 1
        for message in self.messages:
            message.uid = self.next_uid
            self.next_uid += 1


class _FakeTransport:
    def __init__(self, mailbox: FakeMailbox) -> None:
        self._mailbox = mailbox

    def close(self) -> None:
        self._mailbox.aborts += 1


class _FakeProtocol:
    def __init__(self, mailbox: FakeMailbox) -> None:
        self.transport = _FakeTransport(mailbox)


class FakeIMAPClient:
    def __init__(self, mailbox: FakeMailbox) -> None:
        self._mailbox = mailbox
        self.protocol = _FakeProtocol(mailbox)

    def _maybe_fail(self, command: str) -> None:
        if self._mailbox.fail_command == command:
            raise OSError(f"connection reset during {command}")

    async def wait_hello_from_server(self) -> None:
        self._maybe_fail("hello")
        self._mailbox.connections += 1

    async def starttls(self) -> Response:
        self._mailbox.starttls_calls += 1
        return Response("OK", [b"Begin TLS negotiation now"])

    async def login(self, user: str, password: str) -> Response:
        self._maybe_fail("login")
        if password != self._mailbox.password:
            return Response("NO", [b"[AUTHENTICATIONFAILED] Invalid credentials"])
        return Response("OK", [b"LOGIN completed"])

    async def examine(self, mailbox: str) -> Response:
        self._maybe_fail("examine")
        return Response(
            "OK",
            [
                b"FLAGS (\\Answered \\Flagged \\Deleted \\Seen \\Draft)",
                f"{len(self._mailbox.messages)} EXISTS".encode(),
                b"0 RECENT",
                f"OK [UIDVALIDITY {self._mailbox.uid_validity}] UIDs valid".encode(),
                f"OK [UIDNEXT {self._mailbox.next_uid}] Predicted next UID".encode(),
                b"[READ-ONLY] EXAMINE completed.",
            ],
        )

    async def fetch(self, message_set: str, items: str) -> Response:
        self._maybe_fail("fetch")
        first, last = (int(part) for part in message_set.split(":"))
        lines: list[bytes | bytearray] = []
        for sequence in range(first, last + 1):
            message = self._mailbox.messages[sequence - 1]
            header = header_block(message.raw)
            lines.append(
                f"{sequence} FETCH (UID {message.uid} FLAGS ({' '.join(message.flags)}) "
                f"BODY[HEADER.FIELDS (SUBJECT FROM DATE)] {{{len(header)}}}".encode()
            )
            lines.append(bytearray(header))
            lines.append(b")")
        lines.append(b"FETCH completed.")
        return Response("OK", lines)

    async def uid(self, command: str, uid: str, items: str) -> Response:
        self._maybe_fail("uid")
        self._mailbox.detail_fetches.append(int(uid))
        for sequence, message in enumerate(self._mailbox.messages, start=1):
            if message.uid != int(uid):
                continue
            flags = " ".join(message.flags)
            if message.uid in self._mailbox.missing_bodies:
                return Response("OK", [f"{sequence} FETCH (UID {message.uid} FLAGS ({flags}))".encode(), b"Done"])
            return Response(
                "OK",
                [
                    f"{sequence} FETCH (UID {message.uid} BODY[] {{{len(message.raw)}}}".encode(),
                    bytearray(message.raw),
                    f" FLAGS ({flags}))".encode(),
                    b"UID FETCH completed.",
                ],
            )
        return Response("OK", [b"UID FETCH completed."])

    async def logout(self) -> Response:
        self._mailbox.logouts += 1
        return Response("OK", [b"BYE Logging out", b"LOGOUT completed."])


def client_factory_for(mailbox: FakeMailbox):
    def factory(account: AccountConfig) -> FakeIMAPClient:
        return FakeIMAPClient(mailbox)

    return factory
