# rt_intel/workflow.py
"""
Dashboard operations. Each function takes the store and the app config
explicitly so the web routes, the background job and manage.py share them.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pytz

from .credentials import parse_credentials
from .models import Article, STATUS_MONITORING
from .publisher import TelegramClient, pipeline_from_settings
from .rewriter import discover, rewrite
from .schedule_manager import NotScheduledError, ScheduleManager
from .scraper import scrape_article

logger = logging.getLogger('rt_intel.workflow')

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_IDLE = "idle"


class WorkflowError(Exception):
    """Operation could not be completed; the message is shown to the operator."""


class ArticleNotFound(WorkflowError):
    pass


def local_now(config) -> datetime:
    return datetime.now(pytz.timezone(config.get('TIMEZONE', 'Asia/Riyadh')))


def build_schedule_manager(store, config, publish: Optional[Callable[[Article], bool]] = None) -> ScheduleManager:
    if publish is None:
        pipeline = pipeline_from_settings(store.telegram_settings(), timeout=config.get('TELEGRAM_TIMEOUT', 20))
        publish = pipeline.publish
    return ScheduleManager.from_config(store, publish, config)


def article_from_discovery(item: Dict[str, str]) -> Article:
    return Article(
        url=item["url"],
        original_title=item["title"],
        original_body=item["body"],
        title=item["title"],
        body=item["body"],
        image_url=item["imageUrl"],
        category=item["category"],
        severity=item["severity"],
    )


def run_discovery(store, config, query: str, timeframe: str, discover_fn=None,
                  now: Optional[datetime] = None) -> List[Article]:
    """Web discovery straight into the publication queue."""
    if not (query or "").strip():
        raise WorkflowError("Query is required")

    discover_fn = discover_fn or discover
    items = discover_fn(query.strip(), timeframe, config, existing_urls=store.known_urls())
    if not items:
        logger.info(f"Discovery for '{query}' produced nothing new")
        return []

    articles = [article_from_discovery(item) for item in items]
    manager = build_schedule_manager(store, config)
    return manager.enqueue(articles, now or local_now(config))


def process_article(store, config, url: str, schedule: bool = True,
                    scrape_fn=None, rewrite_fn=None,
                    now: Optional[datetime] = None) -> Article:
    """
    Scrape -> rewrite -> store. The article joins the queue, or stays under
    monitoring when ``schedule`` is False.
    """
    url = (url or "").strip()
    if not url:
        raise WorkflowError("URL is required")
    scrape_fn = scrape_fn or scrape_article
    rewrite_fn = rewrite_fn or rewrite

    scraped = scrape_fn(url, config)
    if not scraped.success:
        raise WorkflowError(scraped.error or "Failed to scrape article")
    if not (scraped.title or scraped.content):
        raise WorkflowError("No article content found")

    rewritten = rewrite_fn(scraped.title, scraped.content, config)
    article = Article(
        url=url,
        original_title=scraped.title,
        original_body=scraped.content,
        title=rewritten["title"],
        body=rewritten["body"],
        image_url=scraped.original_image_url or None,
        image_base64=scraped.image_base64 or None,
        category=rewritten["category"],
        severity=rewritten["severity"],
    )

    if schedule:
        build_schedule_manager(store, config).enqueue([article], now or local_now(config))
    else:
        article.status = STATUS_MONITORING
        store.add_articles([article])
    logger.info(f"Processed {url} as article ID={article.id} ({article.status})")
    return article


def _require_article(store, article_id: int) -> Article:
    article = store.get_article(article_id)
    if article is None:
        raise ArticleNotFound(f"Article {article_id} not found")
    return article


def publish_now(store, config, article_id: int, now: Optional[datetime] = None) -> Article:
    manager = build_schedule_manager(store, config)
    try:
        result = manager.publish_now(article_id, now or local_now(config))
    except NotScheduledError as e:
        raise WorkflowError(str(e)) from e
    if result is None:
        raise ArticleNotFound(f"Article {article_id} not found")
    if not result:
        raise WorkflowError("Failed to publish article")
    return _require_article(store, article_id)


def schedule_article(store, config, article_id: int, now: Optional[datetime] = None) -> Article:
    article = build_schedule_manager(store, config).schedule(article_id, now or local_now(config))
    if article is None:
        raise ArticleNotFound(f"Article {article_id} not found")
    return article


def delete_article(store, config, article_id: int, now: Optional[datetime] = None) -> None:
    if not build_schedule_manager(store, config).delete(article_id, now or local_now(config)):
        raise ArticleNotFound(f"Article {article_id} not found")


def verify_connection(store, config, client: Optional[TelegramClient] = None) -> Dict[str, str]:
    """getMe identity check, the outcome is stored as the connection status."""
    settings = store.telegram_settings()
    client = client or TelegramClient(settings["token"], settings["chat_id"],
                                      timeout=config.get('TELEGRAM_TIMEOUT', 20))
    bot_name = client.get_me() if client.configured else None
    if bot_name is None:
        logger.warning("Telegram connection check failed")
        return store.update_telegram_settings(status=STATUS_ERROR, bot_name="")
    logger.info(f"Connected to Telegram as {bot_name!r}")
    return store.update_telegram_settings(status=STATUS_SUCCESS, bot_name=bot_name)


def connect_telegram(store, config, token: str, chat_id: str,
                     client: Optional[TelegramClient] = None) -> Dict[str, str]:
    token, chat_id = (token or "").strip(), (chat_id or "").strip()
    if not token or not chat_id:
        raise WorkflowError("Token and chat ID are required")
    store.update_telegram_settings(token=token, chat_id=chat_id, status=STATUS_IDLE, bot_name="")
    return verify_connection(store, config, client=client)


def import_credentials(store, config, text: str, client: Optional[TelegramClient] = None) -> Dict[str, str]:
    credentials = parse_credentials(text)
    if credentials is None:
        raise WorkflowError("No bot token and chat ID found in the text")
    logger.info(f"Imported credentials for chat {credentials.chat_id}")
    return connect_telegram(store, config, credentials.token, credentials.chat_id, client=client)


def stats(store) -> Dict[str, Any]:
    data = store.counts()
    data["telegram"] = store.telegram_settings()["status"]
    return data
