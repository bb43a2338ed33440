"""Telegram delivery for formatted email segments and attachments.

Segments are sent as a reply chain (each one replies to the previous) and
attachments are uploaded as documents replying to the first segment. Calls
are awaited one by one to keep the chain ordered. Nothing is retried.
"""

from collections.abc import Iterable, Sequence
import logging

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import BufferedInputFile, ReplyParameters

from mail_tg.email_parser import Attachment

LOGGER = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when the Bot API rejects a message or document."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description


def _reply_to(message_id: int | None) -> ReplyParameters | None:
    if message_id is None:
        return None
    return ReplyParameters(message_id=message_id, allow_sending_without_reply=True)


class TelegramDelivery:
    """Sends text segments and documents to one Telegram chat.

    Attributes:
        bot: aiogram Bot used for API calls
        chat_id: Target chat id or @username
        message_thread_id: Forum topic, if any
    """

    def __init__(
        self, bot: Bot, chat_id: int | str, message_thread_id: int | None = None
    ) -> None:
        self.bot = bot
        self.chat_id = chat_id
        self.message_thread_id = message_thread_id

    async def send_text_segment(self, text: str, reply_to_id: int | None = None) -> int:
        """Send one MarkdownV2 segment.

        Args:
            text: Escaped MarkdownV2 text
            reply_to_id: Message to reply to, if any

        Returns:
            Id of the delivered message

        Raises:
            DeliveryError: With the Bot API description on failure
        """
        try:
            message = await self.bot.send_message(
                chat_id=self.chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN_V2,
                message_thread_id=self.message_thread_id,
                reply_parameters=_reply_to(reply_to_id),
            )
        except TelegramAPIError as e:
            raise DeliveryError(e.message) from e
        return message.message_id

    async def send_segments(self, segments: Sequence[str]) -> list[int]:
        """Send segments as a reply chain.

        Stops at the first failed segment. Ids delivered so far are still
        returned, so attachments have a message to reply to.

        Returns:
            Ids of the delivered segments, in order
        """
        delivered: list[int] = []

        for index, segment in enumerate(segments, start=1):
            reply_to_id = delivered[-1] if delivered else None
            try:
                delivered.append(await self.send_text_segment(segment, reply_to_id))
            except DeliveryError as e:
                LOGGER.error(
                    'Failed to send segment %d/%d: %s', index, len(segments), e.description
                )
                break

        return delivered

    async def send_attachment(self, attachment: Attachment, reply_to_id: int | None) -> None:
        """Upload one attachment as a document.

        Raises:
            DeliveryError: With the Bot API description on failure
        """
        try:
            await self.bot.send_document(
                chat_id=self.chat_id,
                document=BufferedInputFile(attachment.content, filename=attachment.filename),
                message_thread_id=self.message_thread_id,
                reply_parameters=_reply_to(reply_to_id),
            )
        except TelegramAPIError as e:
            raise DeliveryError(e.message) from e

    async def send_attachments(
        self, attachments: Iterable[Attachment], reply_to_id: int | None
    ) -> tuple[int, int]:
        """Upload attachments one by one, skipping failures.

        Returns:
            Number of delivered and failed attachments
        """
        sent = failed = 0
        for attachment in attachments:
            try:
                await self.send_attachment(attachment, reply_to_id)
            except DeliveryError as e:
                failed += 1
                LOGGER.error(
                    'Failed to upload attachment %s (%s, %d bytes): %s',
                    attachment.filename,
                    attachment.mime_type,
                    attachment.size,
                    e.description,
                )
                continue
            sent += 1
        return sent, failed
