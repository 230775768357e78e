"""
Configuration and logging setup for the store bot.
Values are read from the environment once, at process start.
"""

import os
import logging

from dotenv import load_dotenv

# Load environment variables (for local development)
load_dotenv()

# ============================================================
# LOGGING CONFIGURATION
# ============================================================
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("storebot.config")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        return int(value) if value else default
    except ValueError:
        logger.warning(f"Invalid integer for {name}, using default {default}")
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


# ============================================================
# CONFIGURATION
# ============================================================
class Config:
    """Environment backed settings. Construct a fresh instance to re-read."""

    def __init__(self):
        # Telegram
        self.TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
        self.TELEGRAM_WEBHOOK_SECRET: str = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")
        self.ADMIN_CHAT_ID: str = os.getenv("ADMIN_CHAT_ID", "")
        self.WELCOME_PHOTO_URL: str = os.getenv("WELCOME_PHOTO_URL", "")

        # Supabase
        self.SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
        self.SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

        # Admin panel gate
        self.ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
        self.ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "rahasia123")

        # Bank details shown on invoices
        self.BANK_NAME: str = os.getenv("BANK_NAME", "BCA")
        self.BANK_ACCOUNT_NUMBER: str = os.getenv("BANK_ACCOUNT_NUMBER", "1234-5678-9000")
        self.BANK_ACCOUNT_NAME: str = os.getenv("BANK_ACCOUNT_NAME", "STORE OFFICIAL")

        # Catalog / keyboard layout
        self.MAX_BUTTONS_DISPLAY: int = max(1, _env_int("MAX_BUTTONS_DISPLAY", 50))
        self.BUTTONS_PER_ROW: int = max(1, _env_int("BUTTONS_PER_ROW", 6))
        self.PAGE_SIZE: int = max(1, _env_int("PAGE_SIZE", self.MAX_BUTTONS_DISPLAY))

        # Image host for payment proofs
        self.IMAGE_HOST_URL: str = os.getenv("IMAGE_HOST_URL", "https://catbox.moe/user/api.php")
        self.HTTP_TIMEOUT_SECONDS: int = _env_int("HTTP_TIMEOUT_SECONDS", 30)

        # App Settings
        self.ENABLE_CHAT_LOG: bool = _env_bool("ENABLE_CHAT_LOG")
        self.DEBUG: bool = _env_bool("DEBUG")
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
        self.PORT: int = _env_int("PORT", 8000)

    @property
    def bot_enabled(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_KEY)

    def validate(self) -> list[str]:
        """Validate required configuration."""
        missing = []
        if not self.TELEGRAM_BOT_TOKEN:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_KEY:
            missing.append("SUPABASE_SERVICE_KEY")
        if not self.ADMIN_CHAT_ID:
            missing.append("ADMIN_CHAT_ID")

        if not missing:
            logger.info("✅ All credentials validated (values masked)")

        return missing
