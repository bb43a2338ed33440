"""Raw email parsing.

Turns raw RFC 822 bytes into a ``ParsedEmail``: sender, recipients, subject,
date, HTML and/or plain-text body and attachments. Parsing uses the standard
library ``email`` package with the modern ``policy.default``.
"""

from dataclasses import dataclass, field
from email import policy
from email.headerregistry import Address as HeaderAddress
from email.message import EmailMessage
from email.parser import BytesHeaderParser, BytesParser
import logging

LOGGER = logging.getLogger(__name__)


class EmailParseError(Exception):
    """Raised when raw bytes cannot be turned into a usable email."""

    pass


@dataclass(frozen=True)
class Address:
    name: str
    address: str


@dataclass(frozen=True)
class Attachment:
    filename: str
    mime_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ParsedEmail:
    """Parsed inbound email.

    Attributes:
        sender: First From address, None when the header is missing
        to: To recipients
        subject: Subject line ('' when missing)
        date: Date header as sent ('' when missing)
        html: HTML body, if any
        text: Plain-text body, if any
        attachments: Attached (and inline named) files
    """

    sender: Address | None
    to: list[Address] = field(default_factory=list)
    subject: str = ''
    date: str = ''
    html: str | None = None
    text: str | None = None
    attachments: list[Attachment] = field(default_factory=list)


def _addresses(message: EmailMessage, header: str) -> list[Address]:
    value = message.get(header)
    if value is None:
        return []
    parsed: tuple[HeaderAddress, ...] = getattr(value, 'addresses', ())
    return [Address(name=item.display_name, address=item.addr_spec) for item in parsed]


def _decode_body(part: EmailMessage) -> str:
    """Decode a text part, falling back to lenient UTF-8 on bad charsets."""
    try:
        content = part.get_content()
    except (LookupError, UnicodeDecodeError) as e:
        LOGGER.warning('Failed to decode %s part with get_content(): %s', part.get_content_type(), e)
        payload = part.get_payload(decode=True)
        if not isinstance(payload, bytes):
            return ''
        return payload.decode('utf-8', errors='replace')
    return content if isinstance(content, str) else ''


def _is_attachment(part: EmailMessage) -> bool:
    # Inline images with a filename are attachments too
    disposition = part.get_content_disposition()
    if disposition == 'attachment':
        return True
    if part.get_filename() and (
        disposition == 'inline' or part.get_content_maintype() in ('image', 'application')
    ):
        return True
    return False


def parse_email(raw: bytes) -> ParsedEmail:
    """Parse raw email bytes.

    Args:
        raw: Raw RFC 822 message

    Returns:
        ParsedEmail with headers, bodies and attachments

    Raises:
        EmailParseError: If the input is empty, carries no headers at all, or
            a body part cannot be processed
    """
    if not raw or not raw.strip():
        raise EmailParseError('Empty email')

    message = BytesParser(policy=policy.default).parsebytes(raw)
    if not message.keys():
        raise EmailParseError('No email headers found')

    try:
        senders = _addresses(message, 'from')
        parsed = ParsedEmail(
            sender=senders[0] if senders else None,
            to=_addresses(message, 'to'),
            subject=str(message.get('subject', '') or '').strip(),
            date=str(message.get('date', '') or '').strip(),
        )

        for part in message.walk():
            if part.is_multipart():
                continue

            if _is_attachment(part):
                payload = part.get_payload(decode=True)
                parsed.attachments.append(
                    Attachment(
                        filename=part.get_filename() or 'attachment',
                        mime_type=part.get_content_type(),
                        content=payload if isinstance(payload, bytes) else b'',
                    )
                )
                continue

            content_type = part.get_content_type()
            if content_type == 'text/html' and parsed.html is None:
                parsed.html = _decode_body(part)
            elif content_type == 'text/plain' and parsed.text is None:
                parsed.text = _decode_body(part)
    except (ValueError, TypeError, LookupError, IndexError) as e:
        raise EmailParseError(str(e)) from e

    LOGGER.info(
        'Parsed email %r: html=%s, text=%s, %d attachments',
        parsed.subject,
        parsed.html is not None,
        parsed.text is not None,
        len(parsed.attachments),
    )
    return parsed


def read_raw_headers(raw: bytes) -> dict[str, str]:
    """Read whatever headers survive a lenient header-only parse.

    Used to build failure notifications, so it never raises.

    Returns:
        Lower-cased header names mapped to their (decoded when possible) values
    """
    try:
        message = BytesHeaderParser(policy=policy.compat32).parsebytes(raw or b'')
    except Exception as e:
        LOGGER.warning('Raw header read failed: %s', e)
        return {}

    headers: dict[str, str] = {}
    for name in ('from', 'to', 'subject', 'date'):
        value = message.get(name)
        if value is None:
            continue
        try:
            headers[name] = str(policy.default.header_factory(name, str(value)))
        except Exception:
            headers[name] = str(value)
    return headers
