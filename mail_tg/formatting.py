"""Telegram message formatting for parsed emails.

Builds the MarkdownV2 header block (subject, sender, recipients, date) and
converts the body, so the result can go straight to the chunker.
"""

from email.utils import parsedate_to_datetime
import logging

from html_tg import (
    TransducedBody,
    TransducerConfig,
    clean_text,
    html_to_markdown_v2,
    text_to_markdown_v2,
)
from html_tg.escape import close_trailing_escape, escape_code, escape_markdown_v2

from mail_tg.email_parser import Address, ParsedEmail

LOGGER = logging.getLogger(__name__)

NEW_EMAIL_TITLE = '\N{OPEN MAILBOX WITH RAISED FLAG} *New email*'
FAILURE_TITLE = '\N{WARNING SIGN} *Failed to process email*'
SEPARATOR = '\\-\\-\\-'

NO_SUBJECT = '(no subject)'
NO_CONTENT = '(no content)'
UNKNOWN_SENDER = 'Unknown sender'
UNKNOWN_RECIPIENTS = 'Unknown recipients'


def format_date(date: str) -> str:
    """Format an RFC 2822 date to a readable form with timezone.

    Args:
        date: Date header value (e.g., "Tue, 01 Oct 2024 10:30:00 +0500")

    Returns:
        Formatted date (e.g., "Oct 01, 2024 10:30 (UTC+05:00)"), or the
        original string if it can't be parsed
    """
    try:
        dt = parsedate_to_datetime(date)
    except (TypeError, ValueError, IndexError):
        return date

    offset = dt.strftime('%z')  # e.g., '+0500'
    if not offset:
        return dt.strftime('%b %d, %Y %H:%M')
    return f'{dt.strftime("%b %d, %Y %H:%M")} (UTC{offset[:3]}:{offset[3:]})'


def _field(value: str, config: TransducerConfig | None = None) -> str:
    """Clean and escape one sender-controlled header value."""
    return close_trailing_escape(escape_markdown_v2(clean_text(value, config)))


def format_address(address: Address, config: TransducerConfig | None = None) -> str:
    """Render an address as ``name <`addr`>`` in MarkdownV2."""
    code = f'`{escape_code(clean_text(address.address, config))}`'
    if not address.name:
        return code
    return f'{_field(address.name, config)} <{code}\\>'


def format_header(email: ParsedEmail, config: TransducerConfig | None = None) -> str:
    subject = _field(email.subject or NO_SUBJECT, config)
    sender = (
        format_address(email.sender, config)
        if email.sender
        else escape_markdown_v2(UNKNOWN_SENDER)
    )
    recipients = (
        ', '.join(format_address(rcpt, config) for rcpt in email.to)
        if email.to
        else escape_markdown_v2(UNKNOWN_RECIPIENTS)
    )

    lines = [
        NEW_EMAIL_TITLE,
        f'*{subject}*',
        f'*From:* {sender}',
        f'*To:* {recipients}',
    ]
    if email.date:
        lines.append(f'*Date:* {_field(format_date(email.date), config)}')
    lines.append(SEPARATOR)
    return '\n'.join(lines) + '\n'


def format_body(email: ParsedEmail, config: TransducerConfig | None = None) -> TransducedBody:
    """Convert the email body; HTML wins over plain text when both exist."""
    if email.html and email.html.strip():
        body = html_to_markdown_v2(email.html, config)
    elif email.text and email.text.strip():
        body = text_to_markdown_v2(email.text.strip() + '\n', config)
    else:
        body = TransducedBody(text='')

    if not body.text.strip() and not body.links:
        body.text = escape_markdown_v2(NO_CONTENT)
    return body


def format_email_message(
    email: ParsedEmail, config: TransducerConfig | None = None
) -> TransducedBody:
    """Build the full message: header block followed by the converted body.

    Returns:
        TransducedBody whose text still holds link markers for the chunker
    """
    body = format_body(email, config)
    body.text = format_header(email, config) + body.text
    return body


def format_failure_notice(headers: dict[str, str], error: str) -> str:
    """Build the fallback notification for an email that failed to process.

    Args:
        headers: Headers recovered by a lenient raw read (may be empty)
        error: Error message to report

    Returns:
        MarkdownV2 text
    """
    lines = [
        FAILURE_TITLE,
        f'*Subject:* {_field(headers.get("subject") or NO_SUBJECT)}',
        f'*From:* {_field(headers.get("from") or UNKNOWN_SENDER)}',
    ]
    if headers.get('date'):
        lines.append(f'*Date:* {_field(format_date(headers["date"]))}')
    lines.append(f'*Error:* {_field(error)}')
    return '\n'.join(lines)
