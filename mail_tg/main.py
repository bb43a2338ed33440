import argparse
import asyncio
import hmac
import logging
from pathlib import Path
import sys

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiohttp import web

from mail_tg.config import CONFIG
from mail_tg.delivery import TelegramDelivery
from mail_tg.processor import process_email

LOGGER = logging.getLogger(__name__)

DELIVERY_KEY = web.AppKey('delivery', TelegramDelivery)
BOT_KEY = web.AppKey('bot', Bot)
SECRET_HEADER = 'X-Webhook-Secret'


def create_bot() -> Bot:
    return Bot(CONFIG.bot_token, default=DefaultBotProperties(parse_mode='MarkdownV2'))


def create_delivery(bot: Bot) -> TelegramDelivery:
    return TelegramDelivery(bot, CONFIG.chat_id, CONFIG.message_thread_id)


async def email_handler(request: web.Request) -> web.Response:
    """Accept one raw RFC 822 email and forward it to Telegram."""
    if CONFIG.webhook_secret and not hmac.compare_digest(
        request.headers.get(SECRET_HEADER, ''), CONFIG.webhook_secret
    ):
        LOGGER.warning('Rejected email from %s: bad webhook secret', request.remote)
        return web.json_response({'ok': False, 'description': 'Unauthorized'}, status=401)

    raw = await request.read()
    if not raw.strip():
        return web.json_response({'ok': False, 'description': 'Empty body'}, status=400)

    result = await process_email(
        raw, request.app[DELIVERY_KEY], max_length=CONFIG.max_message_length
    )
    return web.json_response({'ok': True, 'result': result.as_dict()})


async def on_cleanup(app: web.Application) -> None:
    await app[BOT_KEY].session.close()


def create_app(bot: Bot) -> web.Application:
    app = web.Application(client_max_size=50 * 1024 * 1024)
    app[BOT_KEY] = bot
    app[DELIVERY_KEY] = create_delivery(bot)
    app.router.add_post(CONFIG.webhook_path, email_handler)
    app.on_cleanup.append(on_cleanup)
    return app


def run_webhook(bot: Bot, args: argparse.Namespace) -> None:
    app = create_app(bot)
    LOGGER.info(
        'Listening for emails on %s:%s%s', CONFIG.backend_host, CONFIG.backend_port, CONFIG.webhook_path
    )
    web.run_app(app, host=CONFIG.backend_host, port=CONFIG.backend_port)


async def run_once(bot: Bot, args: argparse.Namespace) -> None:
    """Process one email read from a file or stdin (MTA pipe mode)."""
    if args.file in (None, '-'):
        raw = sys.stdin.buffer.read()
    else:
        raw = Path(args.file).read_bytes()

    try:
        result = await process_email(
            raw, create_delivery(bot), max_length=CONFIG.max_message_length
        )
    finally:
        await bot.session.close()
    LOGGER.info('Processed email: %s', result.as_dict())


if __name__ == '__main__':
    logging.basicConfig(level=getattr(logging, CONFIG.logging_level), stream=sys.stdout)

    parser = argparse.ArgumentParser()
    parser.add_argument('file', nargs='?', help='Raw email file (default: stdin).')
    parser.add_argument(
        '-s', '--serve', action='store_true', help='Run the email webhook server.'
    )

    args: argparse.Namespace = parser.parse_args()

    bot = create_bot()

    if args.serve:
        run_webhook(bot, args)
    else:
        asyncio.run(run_once(bot, args))
