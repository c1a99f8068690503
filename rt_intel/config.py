# rt_intel/config.py
import os
import logging


def _env_bool(name, default="false"):
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Database settings
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///rt_intel.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # LLM settings (any OpenAI-compatible endpoint, e.g. Groq)
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    LLM_BASE_URL = os.getenv("LLM_BASE_URL") or None
    DISCOVERY_MODEL = os.getenv("DISCOVERY_MODEL", "gpt-4o-mini")
    REWRITE_MODEL = os.getenv("REWRITE_MODEL", "gpt-4o-mini")
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

    # Telegram settings (seed values, the dashboard can overwrite them)
    TELEGRAM_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")
    TELEGRAM_TIMEOUT = float(os.getenv("TELEGRAM_TIMEOUT", "20"))

    # Scheduler settings
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Riyadh")
    START_SCHEDULER = _env_bool("START_SCHEDULER", "true")
    AUTOPUBLISH_INTERVAL_SECONDS = int(os.getenv("AUTOPUBLISH_INTERVAL_SECONDS", "20"))
    SCHEDULE_STEP_MINUTES = int(os.getenv("SCHEDULE_STEP_MINUTES", "15"))
    SCHEDULE_LEAD_MINUTES = int(os.getenv("SCHEDULE_LEAD_MINUTES", "1"))
    # Match "due or overdue" instead of the exact minute
    PUBLISH_CATCH_UP = _env_bool("PUBLISH_CATCH_UP", "false")

    # Scraper settings
    SCRAPE_PAGE_TIMEOUT = int(os.getenv("SCRAPE_PAGE_TIMEOUT", "45"))
    SCRAPE_SETTLE_SECONDS = float(os.getenv("SCRAPE_SETTLE_SECONDS", "3"))
    SCRAPE_CONTENT_MAX = int(os.getenv("SCRAPE_CONTENT_MAX", "3000"))

    # Lead image heuristic
    IMAGE_MIN_WIDTH = int(os.getenv("IMAGE_MIN_WIDTH", "200"))
    IMAGE_MIN_HEIGHT = int(os.getenv("IMAGE_MIN_HEIGHT", "150"))
    IMAGE_PROXIMITY_BAND = float(os.getenv("IMAGE_PROXIMITY_BAND", "800"))
    IMAGE_DENYLIST = tuple(
        s.strip() for s in os.getenv(
            "IMAGE_DENYLIST", "avatar,icon,logo,author,profile,user"
        ).split(",") if s.strip()
    )

    # Logging settings
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
