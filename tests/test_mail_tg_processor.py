"""End-to-end tests for the email processing pipeline with a fake Bot API."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from aiogram.exceptions import TelegramBadRequest
from conftest import CHAT_ID, build_email, make_bot
import pytest

from html_tg import DEFAULT_CONFIG, LinkQueueMismatchError
from html_tg.utils import utf16_len
from mail_tg.delivery import TelegramDelivery
from mail_tg.processor import process_email


def _sent_texts(bot: AsyncMock) -> list[str]:
    return [call.kwargs['text'] for call in bot.send_message.await_args_list]


# ============================================================================
# Successful delivery
# ============================================================================


async def test_hello_world_single_segment(delivery: TelegramDelivery, bot: AsyncMock) -> None:
    result = await process_email(build_email(text='Hello world'), delivery)

    texts = _sent_texts(bot)
    assert len(texts) == 1
    assert texts[0].endswith('\\-\\-\\-\nHello world\n')
    assert '*Quarterly report*' in texts[0]
    assert result.segments_total == result.segments_sent == 1
    assert result.first_message_id == result.last_message_id == 100
    assert result.fallback is False
    bot.send_document.assert_not_awaited()


async def test_attachments_reply_to_first_segment(delivery: TelegramDelivery, bot: AsyncMock) -> None:
    raw = build_email(
        text='Files attached',
        attachments=[
            ('a.pdf', 'application/pdf', b'%PDF'),
            ('b.png', 'image/png', b'\x89PNG'),
            ('c.zip', 'application/zip', b'PK'),
        ],
    )
    result = await process_email(raw, delivery)

    assert bot.send_document.await_count == 3
    for call in bot.send_document.await_args_list:
        assert call.kwargs['reply_parameters'].message_id == 100
    filenames = [call.kwargs['document'].filename for call in bot.send_document.await_args_list]
    assert filenames == ['a.pdf', 'b.png', 'c.zip']
    assert (result.attachments_sent, result.attachments_failed) == (3, 0)


async def test_long_html_split_into_reply_chain(delivery: TelegramDelivery, bot: AsyncMock) -> None:
    html = '<p>' + 'a' * 2500 + '<a href="https://example.com/x">link</a>' + 'b' * 2500 + '</p>'
    result = await process_email(build_email(html=html), delivery)

    texts = _sent_texts(bot)
    assert len(texts) == 2
    assert all(utf16_len(text) <= 3500 for text in texts)
    assert sum(' [link](https://example.com/x) ' in text for text in texts) == 1

    replies = [call.kwargs['reply_parameters'] for call in bot.send_message.await_args_list]
    assert replies[0] is None
    assert replies[1].message_id == 100
    assert (result.first_message_id, result.last_message_id) == (100, 101)


async def test_marker_in_subject_does_not_break_email(
    delivery: TelegramDelivery, bot: AsyncMock
) -> None:
    raw = build_email(subject='Hi ' + DEFAULT_CONFIG.link_marker, html='<p>body</p>')
    result = await process_email(raw, delivery)

    assert result.fallback is False
    texts = _sent_texts(bot)
    assert len(texts) == 1
    assert texts[0].endswith('\\-\\-\\-\nbody\n')
    assert DEFAULT_CONFIG.link_marker_char not in texts[0]


async def test_custom_max_length(delivery: TelegramDelivery, bot: AsyncMock) -> None:
    result = await process_email(build_email(text='word ' * 200), delivery, max_length=300)

    texts = _sent_texts(bot)
    assert len(texts) == result.segments_total > 1
    assert all(utf16_len(text) <= 300 for text in texts)


# ============================================================================
# Failures
# ============================================================================


async def test_unparseable_input_sends_one_notice(delivery: TelegramDelivery, bot: AsyncMock) -> None:
    result = await process_email(b'this is not an email', delivery)

    texts = _sent_texts(bot)
    assert len(texts) == 1
    assert 'Failed to process email' in texts[0]
    assert 'EmailParseError' in texts[0]
    bot.send_document.assert_not_awaited()
    assert result.fallback is True
    assert result.first_message_id == 100


async def test_delivery_failure_skips_attachments(delivery: TelegramDelivery, bot: AsyncMock) -> None:
    bot.send_message.side_effect = TelegramBadRequest(method=MagicMock(), message='Bad Request')
    raw = build_email(text='x', attachments=[('a.pdf', 'application/pdf', b'%PDF')])

    result = await process_email(raw, delivery)

    bot.send_document.assert_not_awaited()
    assert result.segments_sent == 0
    assert result.first_message_id is None
    assert result.fallback is False


async def test_marker_mismatch_sends_fallback(
    delivery: TelegramDelivery, bot: AsyncMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_chunker(*args, **kwargs):
        raise LinkQueueMismatchError(markers=2, links=1)

    monkeypatch.setattr('mail_tg.processor.chunk_markdown_v2', broken_chunker)
    raw = build_email(
        subject='Broken', html='<p>x</p>', attachments=[('a.pdf', 'application/pdf', b'%PDF')]
    )

    result = await process_email(raw, delivery)

    texts = _sent_texts(bot)
    assert len(texts) == 1
    assert '*Subject:* Broken' in texts[0]
    assert 'LinkQueueMismatchError' in texts[0]
    bot.send_document.assert_not_awaited()
    assert result.fallback is True


async def test_unexpected_error_never_raises(
    delivery: TelegramDelivery, bot: AsyncMock, monkeypatch: pytest.MonkeyPatch
) -> None:
    def exploding_chunker(*args, **kwargs):
        raise RuntimeError('boom')

    monkeypatch.setattr('mail_tg.processor.chunk_markdown_v2', exploding_chunker)
    result = await process_email(build_email(text='x'), delivery)

    assert result.fallback is True
    assert result.segments_sent == 0


async def test_failure_notice_delivery_error_logged(
    delivery: TelegramDelivery, bot: AsyncMock
) -> None:
    bot.send_message.side_effect = TelegramBadRequest(method=MagicMock(), message='Bad Request')
    result = await process_email(b'', delivery)

    assert result.fallback is True
    assert result.first_message_id is None


# ============================================================================
# Concurrency
# ============================================================================


async def test_concurrent_emails_are_isolated() -> None:
    first_bot, second_bot = make_bot(100), make_bot(500)
    first = build_email(
        subject='First',
        html='<p><a href="https://one.example.com">one</a> <a href="https://two.example.com">two</a></p>',
    )
    second = build_email(
        subject='Second', html='<p><a href="https://three.example.com">three</a></p>'
    )

    results = await asyncio.gather(
        process_email(first, TelegramDelivery(first_bot, CHAT_ID)),
        process_email(second, TelegramDelivery(second_bot, CHAT_ID)),
    )

    first_text = ''.join(_sent_texts(first_bot))
    second_text = ''.join(_sent_texts(second_bot))
    assert 'one.example.com' in first_text and 'two.example.com' in first_text
    assert 'three.example.com' not in first_text
    assert 'three.example.com' in second_text
    assert 'one.example.com' not in second_text
    assert [r.fallback for r in results] == [False, False]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
