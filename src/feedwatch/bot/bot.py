import asyncio
import html
import logging
from typing import Optional

from telegram.ext import Application, MessageHandler, filters
from telegram.constants import ParseMode
from telegram.error import Forbidden, TelegramError, TimedOut, NetworkError
from telegram.request import HTTPXRequest

from .router import CommandRouter

logger = logging.getLogger(__name__)

# Telegram API timeouts (seconds)
CONNECT_TIMEOUT = 30.0
READ_TIMEOUT = 30.0
WRITE_TIMEOUT = 30.0
POOL_TIMEOUT = 10.0

# Retry settings for messages addressed by chat id
MAX_RETRIES = 3
RETRY_DELAY = 2.0


class TelegramBot:
    """Telegram bot wrapper"""

    def __init__(self, token: str, router: CommandRouter):
        self.token = token
        self.router = router
        self.application: Optional[Application] = None

    def setup(self) -> Application:
        """Setup bot application with handlers"""
        request = HTTPXRequest(
            connect_timeout=CONNECT_TIMEOUT,
            read_timeout=READ_TIMEOUT,
            write_timeout=WRITE_TIMEOUT,
            pool_timeout=POOL_TIMEOUT,
        )

        self.application = (
            Application.builder()
            .token(self.token)
            .request(request)
            .build()
        )

        # Every text message goes through the router, commands included
        self.application.add_handler(MessageHandler(filters.TEXT, self.router.handle_update))

        return self.application

    async def send_message(self, chat_id: int, message: str, parse_mode: Optional[str] = None) -> bool:
        """Send a message addressed to a chat id, retrying on timeouts

        Returns:
            True: sent
            False: failed (bot blocked or other error)
        """
        last_error = None

        for attempt in range(MAX_RETRIES):
            try:
                await self.application.bot.send_message(
                    chat_id=chat_id,
                    text=message,
                    parse_mode=parse_mode,
                )
                return True
            except Forbidden:
                logger.debug(f"Chat {chat_id} blocked the bot")
                return False
            except (TimedOut, NetworkError) as e:
                last_error = e
                if attempt < MAX_RETRIES - 1:
                    logger.warning(f"Send to {chat_id} timed out, retry {attempt + 1}...")
                    await asyncio.sleep(RETRY_DELAY)
            except TelegramError as e:
                logger.error(f"Send to {chat_id} failed: {e}")
                return False

        logger.error(f"Send to {chat_id} failed after {MAX_RETRIES} attempts: {last_error}")
        return False

    async def send_admin_alert(self, chat_id: int, message: str) -> bool:
        """Send admin alert message"""
        alert_message = (
            f"🚨 <b>System alert</b>\n\n"
            f"{html.escape(message)}"
        )
        return await self.send_message(chat_id, alert_message, parse_mode=ParseMode.HTML)
