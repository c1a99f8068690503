# rt_intel/store.py
"""
Explicit persistence boundary for the dashboard state.

Everything the process mutates at runtime (the article queue, the news sources
and the Telegram credentials) goes through IntelStore, so the schedule manager
and the publish pipeline never touch the database session directly.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .init import db
from .models import Article, NewsSource, Setting, STATUS_PUBLISHED, STATUS_SCHEDULED

logger = logging.getLogger('rt_intel.store')

SCHEMA_VERSION_KEY = "schema_version"
TELEGRAM_KEY = "telegram"

DEFAULT_SOURCES = [
    {"name": "RT World", "url": "https://arabic.rt.com/world/"},
    {"name": "RT Middle East", "url": "https://arabic.rt.com/middle_east/"},
]


class SchemaVersionError(RuntimeError):
    """Stored data was written by a different schema version."""


class IntelStore:
    SCHEMA_VERSION = 1

    def __init__(self, session=None, seed_token: Optional[str] = None, seed_chat_id: Optional[str] = None):
        self.session = session if session is not None else db.session
        self.seed_token = seed_token
        self.seed_chat_id = seed_chat_id

    @classmethod
    def from_app(cls, app):
        return cls(
            db.session,
            seed_token=app.config.get('TELEGRAM_TOKEN'),
            seed_chat_id=app.config.get('TELEGRAM_CHAT_ID'),
        )

    def initialize(self) -> None:
        """Check the schema version and seed defaults on a fresh database."""
        stored = self.get_setting(SCHEMA_VERSION_KEY)
        if stored is None:
            logger.info(f"Initializing store with schema version {self.SCHEMA_VERSION}")
            self.set_setting(SCHEMA_VERSION_KEY, self.SCHEMA_VERSION, commit=False)
        elif stored != self.SCHEMA_VERSION:
            raise SchemaVersionError(
                f"Stored schema version {stored!r} does not match {self.SCHEMA_VERSION}"
            )

        if NewsSource.query.count() == 0:
            for source in DEFAULT_SOURCES:
                self.session.add(NewsSource(name=source["name"], url=source["url"], is_active=True))

        if self.get_setting(TELEGRAM_KEY) is None and self.seed_token and self.seed_chat_id:
            logger.info("Seeding Telegram credentials from environment")
            self.set_setting(TELEGRAM_KEY, {
                "token": self.seed_token.strip(),
                "chat_id": self.seed_chat_id.strip(),
                "status": "idle",
                "bot_name": "",
            }, commit=False)

        self.save()

    def save(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.error("Error committing store changes", exc_info=True)
            raise

    # Settings

    def get_setting(self, key: str, default: Any = None) -> Any:
        row = self.session.get(Setting, key)
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError:
            logger.warning(f"Setting {key} holds invalid JSON, ignoring it")
            return default

    def set_setting(self, key: str, value: Any, commit: bool = True) -> None:
        row = self.session.get(Setting, key)
        payload = json.dumps(value, ensure_ascii=False)
        if row is None:
            self.session.add(Setting(key=key, value=payload))
        else:
            row.value = payload
        if commit:
            self.save()

    def telegram_settings(self) -> Dict[str, str]:
        data = self.get_setting(TELEGRAM_KEY) or {}
        return {
            "token": data.get("token", "") or "",
            "chat_id": data.get("chat_id", "") or "",
            "status": data.get("status", "idle") or "idle",
            "bot_name": data.get("bot_name", "") or "",
        }

    def update_telegram_settings(self, **fields) -> Dict[str, str]:
        current = self.telegram_settings()
        current.update({k: v for k, v in fields.items() if v is not None})
        self.set_setting(TELEGRAM_KEY, current)
        return current

    # Articles

    def all_articles(self) -> List[Article]:
        return Article.query.order_by(Article.created_at.desc(), Article.id.desc()).all()

    def get_article(self, article_id: int) -> Optional[Article]:
        return self.session.get(Article, article_id)

    def scheduled_articles(self) -> List[Article]:
        """Scheduled articles in insertion order."""
        return (Article.query
                .filter_by(status=STATUS_SCHEDULED)
                .order_by(Article.created_at, Article.id)
                .all())

    def next_due(self) -> Optional[Article]:
        return (Article.query
                .filter_by(status=STATUS_SCHEDULED)
                .order_by(Article.scheduled_at, Article.created_at, Article.id)
                .first())

    def add_articles(self, articles: Iterable[Article], commit: bool = True) -> List[Article]:
        articles = list(articles)
        self.session.add_all(articles)
        if commit:
            self.save()
        else:
            self.session.flush()
        return articles

    def delete_article(self, article: Article, commit: bool = True) -> None:
        self.session.delete(article)
        if commit:
            self.save()

    def known_urls(self) -> List[str]:
        rows = self.session.query(Article.url).order_by(Article.created_at, Article.id).all()
        return [url for (url,) in rows if url]

    def counts(self) -> Dict[str, int]:
        return {
            "total": Article.query.count(),
            "scheduled": Article.query.filter_by(status=STATUS_SCHEDULED).count(),
            "published": Article.query.filter_by(status=STATUS_PUBLISHED).count(),
        }

    # Sources

    def sources(self) -> List[NewsSource]:
        return NewsSource.query.order_by(NewsSource.id).all()

    def add_source(self, name: str, url: str) -> NewsSource:
        source = NewsSource(name=name.strip(), url=url.strip(), is_active=True)
        self.session.add(source)
        self.save()
        return source
