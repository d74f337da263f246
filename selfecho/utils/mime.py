import email
import html
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email import errors, policy
from email.message import Message as PythonEmailMessage
from email.parser import BytesParser
from email.utils import getaddresses, parsedate_to_datetime

from selfecho.exceptions import DecodeError

logger = logging.getLogger(__name__)

# Defects that mean the multipart structure itself could not be recovered.
_STRUCTURAL_DEFECTS = (
    errors.NoBoundaryInMultipartDefect,
    errors.StartBoundaryNotFoundDefect,
    errors.MultipartInvariantViolationDefect,
)


@dataclass
class DecodedBody:
    body: str
    html: str = ""
    plain: str = ""


@dataclass
class MessageHeaders:
    subject: str = ""
    from_addr: str = ""
    date: datetime | None = None


def safe_text(value: str | bytes | None) -> str:
    """Return valid Unicode: invalid sequences become U+FFFD, NULs are dropped."""
    if not value:
        return ""
    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="replace")
    else:
        text = value.encode("utf-8", errors="surrogatepass").decode("utf-8", errors="replace")
    return text.replace("\x00", "")


def escape_text(text: str) -> str:
    """HTML-escape plain text and render newlines as line breaks."""
    return html.escape(text.replace("\r\n", "\n")).replace("\n", "<br>")


class MimeDecoder:
    """Turns raw RFC 822 payloads into display-ready, storage-safe text."""

    @staticmethod
    def decode_body(raw: bytes | None) -> DecodedBody:
        """Decode a full message into a display body.

        HTML is preferred; otherwise the first plain text part is escaped. A
        payload whose multipart structure cannot be parsed is returned as
        escaped raw text, so this never raises.
        """
        if not raw:
            return DecodedBody(body="")

        try:
            return MimeDecoder._decode_parts(raw)
        except DecodeError as e:
            logger.debug(f"Falling back to raw text body: {e}")
            plain = safe_text(raw)
            return DecodedBody(body=escape_text(plain), plain=plain)

    @staticmethod
    def _decode_parts(raw: bytes) -> DecodedBody:
        try:
            msg = email.message_from_bytes(raw, policy=policy.default)
        except Exception as e:
            raise DecodeError(f"unparseable message: {e}") from e

        html_body = ""
        plain_body = ""
        for part in msg.walk():
            if any(isinstance(defect, _STRUCTURAL_DEFECTS) for defect in part.defects):
                raise DecodeError("broken multipart structure")
            if part.is_multipart() or part.get_content_disposition() == "attachment":
                continue

            content_type = part.get_content_type()
            if content_type == "text/html" and not html_body:
                html_body = MimeDecoder._part_text(part)
            elif content_type == "text/plain" and not plain_body:
                plain_body = MimeDecoder._part_text(part)

        if html_body:
            return DecodedBody(body=html_body, html=html_body, plain=plain_body)
        if plain_body:
            return DecodedBody(body=escape_text(plain_body), plain=plain_body)
        return DecodedBody(body="")

    @staticmethod
    def _part_text(part: PythonEmailMessage) -> str:
        """Transfer-decode (base64, quoted-printable or raw) and charset-decode a part."""
        try:
            payload = part.get_payload(decode=True)
        except Exception:
            logger.debug("Failed to transfer-decode part, using raw payload", exc_info=True)
            payload = str(part.get_payload()).encode("utf-8", errors="surrogateescape")

        if not payload:
            return ""
        if not isinstance(payload, bytes):
            return safe_text(str(payload))

        charset = part.get_content_charset() or "utf-8"
        try:
            text = payload.decode(charset, errors="replace")
        except LookupError:
            text = payload.decode("utf-8", errors="replace")
        return safe_text(text)

    @staticmethod
    def parse_headers(raw: bytes | None) -> MessageHeaders:
        """Extract subject, first sender address and date from a header block."""
        if not raw:
            return MessageHeaders()

        try:
            msg = BytesParser(policy=policy.default).parsebytes(raw, headersonly=True)
        except Exception:
            logger.warning("Failed to parse message headers", exc_info=True)
            return MessageHeaders()

        return MessageHeaders(
            subject=safe_text(MimeDecoder._header(msg, "Subject")),
            from_addr=safe_text(MimeDecoder._first_address(MimeDecoder._header(msg, "From"))),
            date=MimeDecoder._parse_date(MimeDecoder._header(msg, "Date")),
        )

    @staticmethod
    def _header(msg: PythonEmailMessage, name: str) -> str:
        try:
            value = msg.get(name)
        except Exception:
            logger.debug(f"Malformed {name} header", exc_info=True)
            return ""
        return str(value).strip() if value is not None else ""

    @staticmethod
    def _first_address(address_string: str) -> str:
        if not address_string:
            return ""
        for _, address in getaddresses([address_string]):
            if address:
                return address
        return ""

    @staticmethod
    def _parse_date(date_header: str) -> datetime | None:
        if not date_header:
            return None
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError, IndexError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
