import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .errors import ConfigError

TOKEN_ENV_VAR = "TELEGRAM_BOT_TOKEN"


class AppConfig(BaseModel):
    """Application configuration"""

    bot_token: Optional[str] = Field(
        default=None,
        description="Telegram Bot Token (TELEGRAM_BOT_TOKEN overrides it)"
    )

    admin_chat_id: Optional[int] = Field(
        default=None,
        description="Admin chat ID for receiving alerts"
    )

    feed_timeout: int = Field(
        default=30,
        description="Timeout in seconds when downloading a feed to validate it"
    )

    busy_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for the database write lock"
    )


class ConfigManager:
    """Manages application configuration"""

    CONFIG_FILE = "config.json"
    DB_FILE = "data.db"

    def __init__(self, config_dir: Optional[Path] = None):
        # Default to current working directory
        self.config_dir = Path(config_dir) if config_dir else Path.cwd()
        self.config_path = self.config_dir / self.CONFIG_FILE
        self.db_path = self.config_dir / self.DB_FILE

    def ensure_config_dir(self) -> None:
        """Ensure config directory exists"""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load(self) -> AppConfig:
        """Load configuration from file, environment variables override it"""
        data = {}
        if self.config_path.exists():
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        config = AppConfig.model_validate(data)

        env_token = os.environ.get(TOKEN_ENV_VAR)
        if env_token:
            config.bot_token = env_token
        return config

    def save(self, config: AppConfig) -> None:
        """Save configuration to file"""
        self.ensure_config_dir()
        with open(self.config_path, "w", encoding="utf-8") as f:
            # Only save non-None fields
            data = config.model_dump(exclude_none=True)
            json.dump(data, f, indent=2, ensure_ascii=False)

    def exists(self) -> bool:
        """Check if configuration file exists"""
        return self.config_path.exists()

    def require_token(self, config: AppConfig) -> str:
        """Return the bot token or fail when none is configured"""
        if not config.bot_token:
            raise ConfigError(
                f"Bot token is not set: export {TOKEN_ENV_VAR} or run 'feedwatch init'"
            )
        return config.bot_token

    def get_db_path(self) -> Path:
        """Get database file path"""
        self.ensure_config_dir()
        return self.db_path
