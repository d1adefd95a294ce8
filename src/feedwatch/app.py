import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from telegram import Update

from .bot.bot import TelegramBot
from .bot.router import CommandRouter
from .config import AppConfig
from .database import Database
from .feed import FeedResolver, FeedValidator, HttpFeedValidator
from .subscriptions import SubscriptionManager
from .timezone import TimezoneConfigurator


def setup_logging(log_dir: Optional[Path] = None) -> None:
    """Configure logging

    - stdout (collected by journald)
    - file, rotated at midnight, 30 days kept
    """
    log_format = "%(asctime)s - %(levelname)s - %(message)s"
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    # Avoid duplicate handlers
    root_logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(stream_handler)

    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "app.log"
        file_handler = logging.handlers.TimedRotatingFileHandler(
            filename=log_file,
            when="midnight",
            interval=1,
            backupCount=30,
            encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(log_format))
        file_handler.suffix = "%Y-%m-%d"
        root_logger.addHandler(file_handler)


logger = logging.getLogger(__name__)

# Suppress noisy httpx logs
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("telegram").setLevel(logging.WARNING)


class Application:
    """Wires the store, the subscription core and the Telegram transport"""

    def __init__(
        self,
        config: AppConfig,
        token: str,
        db: Database,
        validator: Optional[FeedValidator] = None
    ):
        self.config = config
        self.admin_chat_id = config.admin_chat_id
        self.db = db
        resolver = FeedResolver(validator or HttpFeedValidator(timeout=config.feed_timeout))
        self.subscriptions = SubscriptionManager(db, resolver)
        self.timezones = TimezoneConfigurator(db)
        self.router = CommandRouter(
            self.subscriptions,
            self.timezones,
            on_storage_error=self._notify_admin
        )
        self.bot = TelegramBot(token, self.router)

    async def _notify_admin(self, message: str) -> None:
        """Send notification to admin"""
        if not self.admin_chat_id:
            logger.warning("Admin chat_id is not configured, alert dropped")
            return

        if await self.bot.send_admin_alert(self.admin_chat_id, message):
            logger.info("📢 Admin alert sent")

    def run(self) -> None:
        """Start polling (blocking)"""
        application = self.bot.setup()

        async def post_init(app):
            me = await app.bot.get_me()
            logger.info(f"🤖 Telegram Bot @{me.username} started")

        application.post_init = post_init

        logger.info("🤖 Telegram Bot starting...")
        application.run_polling(allowed_updates=[Update.MESSAGE])
