# rt_intel/schedule_manager.py
"""
Publication queue with auto-shift.

Every change to the set of scheduled articles re-spaces the whole queue: in
insertion order, the first article goes out at now + lead and each following
one ``step`` minutes later. A tick publishes the earliest article only when
its slot equals the current minute. With catch-up enabled the earliest
overdue slot goes out instead.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from .models import Article, STATUS_MONITORING, STATUS_PUBLISHED, STATUS_SCHEDULED

logger = logging.getLogger('rt_intel.schedule_manager')

# Shared by every manager in the process: the web routes and the background
# job each build their own instance over the same queue
QUEUE_LOCK = threading.RLock()


def format_hhmm(moment: datetime) -> str:
    return moment.strftime("%H:%M")


def slot_datetime(slot: str, now: datetime) -> datetime:
    """
    Resolves an HH:MM slot to its occurrence closest to ``now``, so a slot
    re-spaced past midnight reads as tomorrow rather than this morning.
    """
    hour, minute = map(int, slot.split(":"))
    moment = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if moment - now > timedelta(hours=12):
        moment -= timedelta(days=1)
    elif now - moment > timedelta(hours=12):
        moment += timedelta(days=1)
    return moment


class NotScheduledError(ValueError):
    """Manual publish was asked for an article that is not in the queue."""


class ScheduleManager:

    def __init__(self, store, publish: Callable[[Article], bool],
                 step_minutes: int = 15, lead_minutes: int = 1, catch_up: bool = False, lock=None):
        self.store = store
        self.publish = publish
        self.step = timedelta(minutes=step_minutes)
        self.lead = timedelta(minutes=lead_minutes)
        self.catch_up = catch_up
        self._lock = lock if lock is not None else QUEUE_LOCK

    @classmethod
    def from_config(cls, store, publish, config):
        return cls(
            store,
            publish,
            step_minutes=config.get('SCHEDULE_STEP_MINUTES', 15),
            lead_minutes=config.get('SCHEDULE_LEAD_MINUTES', 1),
            catch_up=config.get('PUBLISH_CATCH_UP', False),
        )

    def _respace(self, now: datetime) -> List[Article]:
        queue = self.store.scheduled_articles()
        start = now + self.lead
        for position, article in enumerate(queue):
            article.scheduled_at = format_hhmm(start + position * self.step)
        return queue

    def reschedule(self, now: datetime) -> List[Article]:
        """Re-space every scheduled article and persist the new slots."""
        with self._lock:
            queue = self._respace(now)
            self.store.save()
        if queue:
            logger.info(f"Queue re-spaced: {len(queue)} articles from {queue[0].scheduled_at}")
        return queue

    def enqueue(self, articles: Iterable[Article], now: datetime) -> List[Article]:
        articles = list(articles)
        with self._lock:
            for article in articles:
                article.status = STATUS_SCHEDULED
            self.store.add_articles(articles, commit=False)
            self._respace(now)
            self.store.save()
        logger.info(f"Enqueued {len(articles)} articles")
        return articles

    def schedule(self, article_id: int, now: datetime) -> Optional[Article]:
        """Moves a monitored article into the queue."""
        with self._lock:
            article = self.store.get_article(article_id)
            if article is None:
                return None
            if article.status != STATUS_MONITORING:
                logger.info(f"Article ID={article_id} is {article.status}, not scheduling")
                return article
            article.status = STATUS_SCHEDULED
            self.store.session.flush()
            self._respace(now)
            self.store.save()
        logger.info(f"Article ID={article_id} scheduled at {article.scheduled_at}")
        return article

    def delete(self, article_id: int, now: datetime) -> bool:
        with self._lock:
            article = self.store.get_article(article_id)
            if article is None:
                return False
            was_scheduled = article.status == STATUS_SCHEDULED
            self.store.delete_article(article, commit=False)
            self.store.session.flush()
            if was_scheduled:
                self._respace(now)
            self.store.save()
        logger.info(f"Article ID={article_id} deleted")
        return True

    def _mark_published(self, article: Article, now: datetime) -> None:
        article.status = STATUS_PUBLISHED
        article.scheduled_at = None
        self.store.session.flush()
        self._respace(now)
        self.store.save()

    def publish_now(self, article_id: int, now: datetime) -> Optional[bool]:
        """
        Manual publish of a queued article ahead of its slot. Returns None for
        an unknown id, otherwise whether delivery succeeded. Monitored articles
        raise NotScheduledError.
        """
        with self._lock:
            article = self.store.get_article(article_id)
            if article is None:
                return None
            if article.status == STATUS_PUBLISHED:
                logger.info(f"Article ID={article_id} already published")
                return True
            if article.status != STATUS_SCHEDULED:
                raise NotScheduledError(f"Article {article_id} is {article.status}, schedule it first")
            if not self.publish(article):
                logger.warning(f"Manual publish failed for ID={article_id}")
                return False
            self._mark_published(article, now)
        logger.info(f"Article ID={article_id} published manually")
        return True

    def _due_article(self, now: datetime) -> Optional[Article]:
        if not self.catch_up:
            article = self.store.next_due()
            if article is not None and article.scheduled_at == format_hhmm(now):
                return article
            return None

        queue = [a for a in self.store.scheduled_articles() if a.scheduled_at]
        if not queue:
            return None
        # queue order breaks ties between equal slots
        article = min(queue, key=lambda a: slot_datetime(a.scheduled_at, now))
        return article if slot_datetime(article.scheduled_at, now) <= now else None

    def tick(self, now: datetime) -> Optional[Article]:
        """
        Publishes the head of the queue if its slot is the current minute.

        Overlapping ticks are skipped rather than queued, so one slot can never
        be delivered twice.
        """
        if not self._lock.acquire(blocking=False):
            logger.info("Previous tick still running, skipping")
            return None
        try:
            article = self._due_article(now)
            if article is None:
                return None

            logger.info(f"Article ID={article.id} due at {article.scheduled_at}, publishing")
            if not self.publish(article):
                logger.error(f"Scheduled publish failed for ID={article.id}, keeping it queued")
                return None

            self._mark_published(article, now)
            logger.info(f"Article ID={article.id} published")
            return article
        finally:
            self._lock.release()
