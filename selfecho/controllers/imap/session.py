import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Sequence

from aioimaplib import IMAP4, Response

from selfecho.controllers.imap.models import FetchedMessage, MailboxStatus
from selfecho.exceptions import MailboxConnectionError, MailboxProtocolError
from selfecho.utils.mime import MimeDecoder

SUMMARY_ITEMS = "(UID FLAGS BODY.PEEK[HEADER.FIELDS (SUBJECT FROM DATE)])"
DETAIL_ITEMS = "(UID FLAGS BODY.PEEK[])"

_FETCH_START = re.compile(rb"^\*?\s*(\d+) FETCH \(", re.IGNORECASE)
_UID = re.compile(rb"(?:^|[\s(])UID (\d+)", re.IGNORECASE)
_FLAGS = re.compile(rb"FLAGS \(([^)]*)\)", re.IGNORECASE)
_EXISTS = re.compile(rb"^\*?\s*(\d+) EXISTS", re.IGNORECASE)
_UID_VALIDITY = re.compile(rb"\[UIDVALIDITY (\d+)\]", re.IGNORECASE)


@dataclass
class _FetchRecord:
    sequence: int
    uid: int | None = None
    flags: frozenset[str] | None = None
    literal: bytes | None = None


def _as_bytes(line: Any) -> bytes:
    if isinstance(line, (bytes, bytearray)):
        return bytes(line)
    return str(line).encode()


def parse_select_response(lines: Sequence[Any]) -> MailboxStatus:
    """Read EXISTS and UIDVALIDITY out of a SELECT/EXAMINE response."""
    exists: int | None = None
    uid_validity: int | None = None
    for line in lines:
        data = _as_bytes(line)
        exists_match = _EXISTS.search(data)
        if exists_match:
            exists = int(exists_match.group(1))
        validity_match = _UID_VALIDITY.search(data)
        if validity_match:
            uid_validity = int(validity_match.group(1))

    if exists is None or uid_validity is None:
        raise MailboxProtocolError(f"Mailbox status incomplete; exists: {exists}, uidvalidity: {uid_validity}")
    return MailboxStatus(exists=exists, uid_validity=uid_validity)


def _apply_attributes(record: _FetchRecord, data: bytes) -> None:
    uid_match = _UID.search(data)
    if uid_match and record.uid is None:
        record.uid = int(uid_match.group(1))
    flags_match = _FLAGS.search(data)
    if flags_match and record.flags is None:
        record.flags = frozenset(flag.decode(errors="replace") for flag in flags_match.group(1).split())


def parse_fetch_response(lines: Sequence[Any]) -> list[_FetchRecord]:
    """Group FETCH response lines into one record per message.

    aioimaplib yields each literal as a bytearray right after the line that
    announced it; attributes may appear before or after the literal.
    """
    records: list[_FetchRecord] = []
    current: _FetchRecord | None = None
    for line in lines:
        if isinstance(line, bytearray):
            if current is not None and current.literal is None:
                current.literal = bytes(line)
            continue

        data = _as_bytes(line)
        start = _FETCH_START.match(data)
        if start:
            current = _FetchRecord(sequence=int(start.group(1)))
            records.append(current)
            _apply_attributes(current, data)
        elif current is not None and data.strip() != b")":
            _apply_attributes(current, data)
    return records


def _to_fetched_message(record: _FetchRecord, with_raw: bool) -> FetchedMessage | None:
    if record.uid is None:
        return None
    headers = MimeDecoder.parse_headers(record.literal)
    return FetchedMessage(
        uid=record.uid,
        flags=record.flags or frozenset(),
        sequence=record.sequence,
        subject=headers.subject,
        from_addr=headers.from_addr,
        date=headers.date,
        raw=record.literal if with_raw else None,
    )


class MailboxSession:
    """One authenticated IMAP session over an aioimaplib client."""

    def __init__(self, client: IMAP4, username: str) -> None:
        self._logger = logging.getLogger(__name__)
        self._client = client
        self._username = username

    async def _command(self, command: str, call: Awaitable[Response]) -> Response:
        try:
            response = await call
        except (asyncio.TimeoutError, OSError) as e:
            raise MailboxConnectionError(f"{command} failed for {self._username}: {e!r}") from e
        if response.result != "OK":
            raise MailboxProtocolError(f"{command} failed for {self._username}: {response.result} {response.lines}")
        return response

    async def select_readonly(self, mailbox: str) -> MailboxStatus:
        """Open the mailbox with EXAMINE so nothing is marked as seen."""
        response = await self._command("EXAMINE", self._client.examine(mailbox))
        return parse_select_response(response.lines)

    async def fetch_summaries(self, first: int, last: int) -> list[FetchedMessage]:
        """Fetch UID, flags and envelope headers for a sequence range."""
        if last < first:
            return []
        response = await self._command("FETCH", self._client.fetch(f"{first}:{last}", SUMMARY_ITEMS))

        messages: list[FetchedMessage] = []
        for record in parse_fetch_response(response.lines):
            message = _to_fetched_message(record, with_raw=False)
            if message is None:
                self._logger.warning(f"Skipping FETCH item without UID; sequence: {record.sequence}")
                continue
            messages.append(message)
        return messages

    async def fetch_message(self, uid: int) -> FetchedMessage | None:
        """Fetch one full message by UID; None when the server has no such UID."""
        response = await self._command("UID FETCH", self._client.uid("fetch", str(uid), DETAIL_ITEMS))
        for record in parse_fetch_response(response.lines):
            if record.uid == uid:
                return _to_fetched_message(record, with_raw=True)
        return None

    async def logout(self) -> None:
        await self._client.logout()

    def abort(self) -> None:
        """Drop the transport without a protocol goodbye."""
        protocol = getattr(self._client, "protocol", None)
        transport = getattr(protocol, "transport", None)
        if transport is not None:
            transport.close()
