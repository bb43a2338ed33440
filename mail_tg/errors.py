"""Fallback notification for emails that could not be processed.

Ensures the chat always learns that an email arrived, even when it could not
be parsed or converted, and that the failure is properly logged.
"""

import logging

from html_tg.utils import utf16_len, utf16_prefix

from mail_tg.delivery import DeliveryError, TelegramDelivery
from mail_tg.email_parser import read_raw_headers
from mail_tg.formatting import format_failure_notice

LOGGER = logging.getLogger(__name__)


async def send_failure_notice(
    delivery: TelegramDelivery,
    raw: bytes,
    error: Exception,
    max_length: int,
) -> int | None:
    """Send one notification built from the raw headers and the error.

    Args:
        delivery: Telegram delivery for the target chat
        raw: Raw email bytes that failed to process
        error: The failure to report
        max_length: Maximum notification length in UTF-16 code units

    Returns:
        Id of the notification message, or None if it could not be sent
    """
    error_class = type(error).__name__
    LOGGER.error('Email processing failed with %s: %s', error_class, error)

    headers = read_raw_headers(raw)
    text = format_failure_notice(headers, f'{error_class}: {error}')
    if utf16_len(text) > max_length:
        text = text[: utf16_prefix(text, max_length - 1)].rstrip('\\')

    try:
        return await delivery.send_text_segment(text)
    except DeliveryError as e:
        LOGGER.error('Failed to send failure notice: %s', e.description)
        return None
