"""Shared fixtures: fake Bot API and raw email builders."""

from email.message import EmailMessage
import itertools
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

# mail_tg.config reads the environment at import time
os.environ.setdefault('BOT_TOKEN', '123456:TEST-TOKEN')
os.environ.setdefault('CHAT_ID', '-1001234567890')

from mail_tg.delivery import TelegramDelivery  # noqa: E402

CHAT_ID = -1001234567890


def make_bot(first_message_id: int = 100) -> AsyncMock:
    """Bot mock whose send_message returns increasing message ids."""
    bot = AsyncMock()
    counter = itertools.count(first_message_id)
    bot.send_message.side_effect = lambda **kwargs: SimpleNamespace(message_id=next(counter))
    bot.send_document.return_value = SimpleNamespace(message_id=999)
    return bot


def build_email(
    *,
    subject: str | None = 'Quarterly report',
    sender: str | None = 'Alice Example <alice@example.com>',
    to: str | None = 'Bob <bob@example.com>',
    text: str | None = None,
    html: str | None = None,
    attachments: list[tuple[str, str, bytes]] | None = None,
) -> bytes:
    """Build raw RFC 822 bytes.

    Args:
        attachments: (filename, mime type, content) triples
    """
    message = EmailMessage()
    if subject is not None:
        message['Subject'] = subject
    if sender is not None:
        message['From'] = sender
    if to is not None:
        message['To'] = to
    message['Date'] = 'Tue, 01 Oct 2024 10:30:00 +0500'

    if text is not None:
        message.set_content(text)
    if html is not None:
        if text is None:
            message.set_content(html, subtype='html')
        else:
            message.add_alternative(html, subtype='html')
    for filename, mime_type, content in attachments or []:
        maintype, subtype = mime_type.split('/')
        message.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
    return message.as_bytes()


@pytest.fixture
def bot() -> AsyncMock:
    return make_bot()


@pytest.fixture
def delivery(bot: AsyncMock) -> TelegramDelivery:
    return TelegramDelivery(bot, CHAT_ID)
