import logging
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _parse_feeds(raw: str) -> list[tuple[str, str]]:
    # "연합뉴스|https://...;한국경제|https://..."
    feeds = []
    for item in raw.split(";"):
        if "|" not in item:
            continue
        publisher, url = item.split("|", 1)
        if publisher.strip() and url.strip():
            feeds.append((publisher.strip(), url.strip()))
    return feeds


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", f"sqlite:///{BASE_DIR / 'econews.db'}")
    SQLALCHEMY_ECHO = _env_bool("SQLALCHEMY_ECHO", "false")

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    RSS_FEEDS = _parse_feeds(os.getenv("RSS_FEEDS", ""))
    RSS_CUTOFF_HOURS = int(os.getenv("RSS_CUTOFF_HOURS", "48"))

    PIPELINE_ENABLED = _env_bool("PIPELINE_ENABLED", "true")
    PIPELINE_INTERVAL_MINUTES = int(os.getenv("PIPELINE_INTERVAL_MINUTES", "10"))
    # run locks expire so a killed worker cannot block a job forever
    RUN_LOCK_TIMEOUT_SECONDS = int(os.getenv("RUN_LOCK_TIMEOUT_SECONDS", "3600"))

    CLUSTER_WINDOW_HOURS = int(os.getenv("CLUSTER_WINDOW_HOURS", "48"))
    CLUSTER_ARTICLE_LIMIT = int(os.getenv("CLUSTER_ARTICLE_LIMIT", "1000"))

    CARD_TARGET_HOURS = int(os.getenv("CARD_TARGET_HOURS", "48"))
    CARD_TARGET_LIMIT = int(os.getenv("CARD_TARGET_LIMIT", "50"))

    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_DIR = os.getenv("LOG_DIR")


def configure_logging():
    handlers = [logging.StreamHandler()]
    if Config.LOG_DIR:
        os.makedirs(Config.LOG_DIR, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(Config.LOG_DIR, "econews.log"), mode="a"))

    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
    )
