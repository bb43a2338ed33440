"""Email processing pipeline.

This module handles:
1. Parsing raw email bytes
2. Formatting the header block and converting the body to MarkdownV2
3. Chunking the result to Telegram-sized segments with links re-inserted
4. Delivering segments as a reply chain, then attachments as replies
"""

from dataclasses import dataclass
import logging

from html_tg import LinkQueueMismatchError, TransducerConfig, chunk_markdown_v2

from mail_tg.delivery import TelegramDelivery
from mail_tg.email_parser import EmailParseError, ParsedEmail, parse_email
from mail_tg.errors import send_failure_notice
from mail_tg.formatting import format_email_message

LOGGER = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Summary of one processed email."""

    segments_total: int = 0
    segments_sent: int = 0
    first_message_id: int | None = None
    last_message_id: int | None = None
    attachments_sent: int = 0
    attachments_failed: int = 0
    fallback: bool = False

    def as_dict(self) -> dict[str, int | bool | None]:
        return {
            'segments_total': self.segments_total,
            'segments_sent': self.segments_sent,
            'first_message_id': self.first_message_id,
            'last_message_id': self.last_message_id,
            'attachments_sent': self.attachments_sent,
            'attachments_failed': self.attachments_failed,
            'fallback': self.fallback,
        }


def render_segments(email: ParsedEmail, max_length: int) -> list[str]:
    """Format a parsed email and split it into deliverable segments.

    Each call works on its own link queue.

    Raises:
        LinkQueueMismatchError: If markers and queued links disagree
    """
    config = TransducerConfig(max_chunk_length=max_length)
    message = format_email_message(email, config)
    return chunk_markdown_v2(message.text, message.links, config=config)


async def deliver_email(
    email: ParsedEmail, delivery: TelegramDelivery, max_length: int
) -> ProcessingResult:
    """Deliver a parsed email: segments first, then attachments.

    Raises:
        LinkQueueMismatchError: If markers and queued links disagree
    """
    segments = render_segments(email, max_length)
    result = ProcessingResult(segments_total=len(segments))

    delivered = await delivery.send_segments(segments)
    result.segments_sent = len(delivered)
    if not delivered:
        LOGGER.error('No segment delivered for %r, skipping attachments', email.subject)
        return result

    result.first_message_id = delivered[0]
    result.last_message_id = delivered[-1]

    if email.attachments:
        result.attachments_sent, result.attachments_failed = await delivery.send_attachments(
            email.attachments, reply_to_id=result.first_message_id
        )
    return result


async def process_email(
    raw: bytes, delivery: TelegramDelivery, max_length: int = 3500
) -> ProcessingResult:
    """Process one raw email end to end.

    Never raises: parse and conversion failures produce a single fallback
    notification, delivery failures are logged, and anything unexpected is
    logged with its traceback.

    Args:
        raw: Raw RFC 822 message
        delivery: Telegram delivery for the target chat
        max_length: Maximum segment length in UTF-16 code units

    Returns:
        ProcessingResult summary
    """
    try:
        try:
            email = parse_email(raw)
            result = await deliver_email(email, delivery, max_length)
        except (EmailParseError, LinkQueueMismatchError) as e:
            message_id = await send_failure_notice(delivery, raw, e, max_length)
            return ProcessingResult(
                segments_total=1,
                segments_sent=int(message_id is not None),
                first_message_id=message_id,
                last_message_id=message_id,
                fallback=True,
            )
    except Exception as e:
        LOGGER.exception('Unhandled %s while processing email: %s', type(e).__name__, e)
        return ProcessingResult(fallback=True)

    LOGGER.info(
        'Email %r delivered: %d/%d segments, %d attachments sent, %d failed',
        email.subject,
        result.segments_sent,
        result.segments_total,
        result.attachments_sent,
        result.attachments_failed,
    )
    return result
