"""Tests for the publication queue: auto-shift spacing, ticks and queue edits."""

import threading
from datetime import datetime
from unittest.mock import Mock

import pytest

from rt_intel.models import STATUS_MONITORING, STATUS_PUBLISHED, STATUS_SCHEDULED
from rt_intel.publisher import PublishPipeline, TelegramClient
from rt_intel.schedule_manager import NotScheduledError, ScheduleManager, format_hhmm, slot_datetime

NOW = datetime(2025, 1, 1, 10, 0)


def _at(hhmm):
    hour, minute = map(int, hhmm.split(":"))
    return NOW.replace(hour=hour, minute=minute)


@pytest.fixture
def publish():
    return Mock(return_value=True)


@pytest.fixture
def manager(store, publish):
    return ScheduleManager(store, publish, lock=threading.RLock())


class TestReschedule:

    def test_spacing_follows_insertion_order(self, store, manager, make_article):
        first = make_article(created_at=datetime(2025, 1, 1, 8, 0), status=STATUS_SCHEDULED)
        second = make_article(created_at=datetime(2025, 1, 1, 8, 5), status=STATUS_SCHEDULED)
        third = make_article(created_at=datetime(2025, 1, 1, 8, 10), status=STATUS_SCHEDULED)
        store.add_articles([third, first, second])

        manager.reschedule(NOW)

        assert [first.scheduled_at, second.scheduled_at, third.scheduled_at] == ["10:01", "10:16", "10:31"]

    def test_gaps_are_exactly_one_step(self, store, manager, make_article):
        store.add_articles([make_article(status=STATUS_SCHEDULED) for _ in range(3)])

        queue = manager.reschedule(NOW)

        slots = [_at(a.scheduled_at) for a in queue]
        assert slots[0] >= _at("10:01")
        assert [(b - a).total_seconds() for a, b in zip(slots, slots[1:])] == [900, 900]

    def test_same_timestamp_falls_back_to_id(self, store, manager, make_article):
        stamp = datetime(2025, 1, 1, 8, 0)
        articles = store.add_articles([make_article(created_at=stamp, status=STATUS_SCHEDULED) for _ in range(2)])

        manager.reschedule(NOW)

        ordered = sorted(articles, key=lambda a: a.id)
        assert [a.scheduled_at for a in ordered] == ["10:01", "10:16"]

    def test_other_articles_untouched(self, store, manager, make_article):
        monitored = make_article(status=STATUS_MONITORING)
        published = make_article(status=STATUS_PUBLISHED)
        queued = make_article(status=STATUS_SCHEDULED, scheduled_at="23:59")
        store.add_articles([monitored, published, queued])

        manager.reschedule(NOW)

        assert monitored.scheduled_at is None
        assert published.scheduled_at is None
        assert queued.scheduled_at == "10:01"

    def test_custom_step_and_lead(self, store, publish, make_article):
        manager = ScheduleManager(store, publish, step_minutes=5, lead_minutes=2, lock=threading.RLock())
        store.add_articles([make_article(status=STATUS_SCHEDULED) for _ in range(2)])
        assert [a.scheduled_at for a in manager.reschedule(NOW)] == ["10:02", "10:07"]

    def test_format_hhmm(self):
        assert format_hhmm(datetime(2025, 1, 1, 7, 5)) == "07:05"


class TestEnqueue:

    def test_enqueue_marks_scheduled_and_spaces(self, store, manager, make_article):
        store.add_articles([make_article(status=STATUS_SCHEDULED, created_at=datetime(2025, 1, 1, 7, 0))])
        new = [make_article(), make_article()]

        manager.enqueue(new, NOW)

        assert all(a.status == STATUS_SCHEDULED for a in new)
        assert [a.scheduled_at for a in store.scheduled_articles()] == ["10:01", "10:16", "10:31"]
        assert all(a.id is not None for a in new)

    def test_enqueue_nothing(self, store, manager):
        assert manager.enqueue([], NOW) == []
        assert store.scheduled_articles() == []


class TestTick:

    def test_publishes_on_exact_match(self, store, manager, publish, make_article):
        first, second = manager.enqueue([make_article(), make_article()], NOW)

        published = manager.tick(_at("10:01"))

        assert published is first
        publish.assert_called_once_with(first)
        assert first.status == STATUS_PUBLISHED
        assert first.scheduled_at is None
        # remaining queue closes the gap
        assert second.scheduled_at == "10:02"

    def test_no_match_does_nothing(self, store, manager, publish, make_article):
        article, = manager.enqueue([make_article()], NOW)

        assert manager.tick(_at("10:00")) is None
        assert manager.tick(_at("10:05")) is None
        publish.assert_not_called()
        assert article.status == STATUS_SCHEDULED
        assert article.scheduled_at == "10:01"

    def test_empty_queue(self, manager, publish):
        assert manager.tick(NOW) is None
        publish.assert_not_called()

    def test_same_minute_twice_publishes_once(self, store, manager, publish, make_article):
        manager.enqueue([make_article(), make_article()], NOW)

        manager.tick(_at("10:01"))
        manager.tick(_at("10:01"))

        assert publish.call_count == 1
        assert store.counts()["published"] == 1

    def test_failed_publish_keeps_article_queued(self, store, manager, publish, make_article):
        publish.return_value = False
        article, = manager.enqueue([make_article()], NOW)

        assert manager.tick(_at("10:01")) is None
        assert article.status == STATUS_SCHEDULED
        assert article.scheduled_at == "10:01"

    def test_earliest_slot_is_taken(self, store, manager, publish, make_article):
        late = make_article(status=STATUS_SCHEDULED, scheduled_at="11:00", created_at=datetime(2025, 1, 1, 6, 0))
        early = make_article(status=STATUS_SCHEDULED, scheduled_at="10:30", created_at=datetime(2025, 1, 1, 7, 0))
        store.add_articles([late, early])

        assert manager.tick(_at("10:30")) is early

    def test_missed_slot_without_catch_up(self, store, manager, publish, make_article):
        manager.enqueue([make_article()], NOW)
        assert manager.tick(_at("10:02")) is None
        publish.assert_not_called()

    def test_catch_up_publishes_overdue_article(self, store, publish, make_article):
        manager = ScheduleManager(store, publish, catch_up=True, lock=threading.RLock())
        article, = manager.enqueue([make_article()], NOW)

        assert manager.tick(_at("10:05")) is article
        assert article.status == STATUS_PUBLISHED

    def test_catch_up_does_not_publish_early(self, store, publish, make_article):
        manager = ScheduleManager(store, publish, catch_up=True, lock=threading.RLock())
        manager.enqueue([make_article()], NOW)
        assert manager.tick(_at("10:00")) is None

    def test_catch_up_keeps_queue_order_across_midnight(self, store, publish, make_article):
        manager = ScheduleManager(store, publish, catch_up=True, lock=threading.RLock())
        first, second = manager.enqueue([make_article(), make_article()], datetime(2025, 1, 1, 23, 50))
        assert [first.scheduled_at, second.scheduled_at] == ["23:51", "00:06"]

        assert manager.tick(datetime(2025, 1, 1, 23, 51)) is first

        publish.assert_called_once_with(first)
        assert second.status == STATUS_SCHEDULED
        assert second.scheduled_at == "23:52"

    def test_catch_up_before_midnight_slot_is_not_overdue(self, store, publish, make_article):
        manager = ScheduleManager(store, publish, catch_up=True, lock=threading.RLock())
        store.add_articles([make_article(status=STATUS_SCHEDULED, scheduled_at="00:06")])

        assert manager.tick(datetime(2025, 1, 1, 23, 51)) is None
        publish.assert_not_called()

    def test_catch_up_after_downtime_past_midnight(self, store, publish, make_article):
        manager = ScheduleManager(store, publish, catch_up=True, lock=threading.RLock())
        first, second = manager.enqueue([make_article(), make_article()], datetime(2025, 1, 1, 23, 50))

        assert manager.tick(datetime(2025, 1, 2, 0, 10)) is first
        assert second.scheduled_at == "00:11"

    def test_slot_datetime_picks_nearest_day(self):
        late = datetime(2025, 1, 1, 23, 51)
        assert slot_datetime("00:06", late) == datetime(2025, 1, 2, 0, 6)
        assert slot_datetime("23:40", datetime(2025, 1, 2, 0, 10)) == datetime(2025, 1, 1, 23, 40)
        assert slot_datetime("10:01", NOW) == datetime(2025, 1, 1, 10, 1)

    def test_tick_skipped_while_another_holds_the_queue(self, store, publish, make_article):
        lock = threading.RLock()
        manager = ScheduleManager(store, publish, lock=lock)
        manager.enqueue([make_article()], NOW)

        held, release = threading.Event(), threading.Event()

        def hold():
            with lock:
                held.set()
                release.wait(5)

        worker = threading.Thread(target=hold)
        worker.start()
        held.wait(5)
        try:
            assert manager.tick(_at("10:01")) is None
        finally:
            release.set()
            worker.join()

        publish.assert_not_called()
        assert manager.tick(_at("10:01")) is not None

    def test_end_to_end_publish_via_image_url(self, store, make_article):
        client = Mock(spec=TelegramClient)
        client.configured = True
        client.timeout = 20
        client.send_photo_url.return_value = True
        fetcher = Mock()
        pipeline = PublishPipeline(client, image_fetcher=fetcher)
        manager = ScheduleManager(store, pipeline.publish, lock=threading.RLock())

        article = make_article(title="X", body="Y", image_url="https://cdn.example/a.jpg",
                               status=STATUS_SCHEDULED, scheduled_at="10:00",
                               created_at=datetime(2025, 1, 1, 8, 0))
        others = [make_article(status=STATUS_SCHEDULED, scheduled_at=slot,
                               created_at=datetime(2025, 1, 1, 9, minute))
                  for minute, slot in ((0, "10:40"), (1, "10:55"))]
        store.add_articles([article] + others)

        assert manager.tick(_at("10:00")) is article
        assert article.status == STATUS_PUBLISHED
        client.send_photo_url.assert_called_once()
        client.send_photo_upload.assert_not_called()
        client.send_message.assert_not_called()
        fetcher.assert_not_called()
        assert [a.scheduled_at for a in others] == ["10:01", "10:16"]


class TestQueueEdits:

    def test_schedule_monitored_article(self, store, manager, make_article):
        queued, = manager.enqueue([make_article(created_at=datetime(2025, 1, 1, 7, 0))], NOW)
        monitored, = store.add_articles([make_article(status=STATUS_MONITORING, created_at=datetime(2025, 1, 1, 8, 0))])

        result = manager.schedule(monitored.id, NOW)

        assert result is monitored
        assert monitored.status == STATUS_SCHEDULED
        assert [queued.scheduled_at, monitored.scheduled_at] == ["10:01", "10:16"]

    def test_schedule_never_reopens_published(self, store, manager, make_article):
        done, = store.add_articles([make_article(status=STATUS_PUBLISHED)])
        manager.schedule(done.id, NOW)
        assert done.status == STATUS_PUBLISHED
        assert done.scheduled_at is None

    def test_schedule_unknown(self, manager):
        assert manager.schedule(999, NOW) is None

    def test_delete_closes_gap(self, store, manager, make_article):
        first, second, third = manager.enqueue([make_article() for _ in range(3)], NOW)

        assert manager.delete(first.id, _at("10:10")) is True

        assert store.get_article(first.id) is None
        assert [second.scheduled_at, third.scheduled_at] == ["10:11", "10:26"]

    def test_delete_monitored_leaves_queue_alone(self, store, manager, make_article):
        queued, = manager.enqueue([make_article()], NOW)
        monitored, = store.add_articles([make_article(status=STATUS_MONITORING)])

        manager.delete(monitored.id, _at("10:10"))

        assert queued.scheduled_at == "10:01"

    def test_delete_unknown(self, manager):
        assert manager.delete(999, NOW) is False

    def test_ids_are_not_reused(self, store, manager, make_article):
        article, = manager.enqueue([make_article()], NOW)
        old_id = article.id
        manager.delete(old_id, NOW)
        new, = manager.enqueue([make_article()], NOW)
        assert new.id > old_id

    def test_publish_now(self, store, manager, publish, make_article):
        first, second = manager.enqueue([make_article(), make_article()], NOW)

        assert manager.publish_now(second.id, _at("10:05")) is True

        publish.assert_called_once_with(second)
        assert second.status == STATUS_PUBLISHED
        assert first.scheduled_at == "10:06"

    def test_publish_now_failure(self, store, manager, publish, make_article):
        publish.return_value = False
        article, = manager.enqueue([make_article()], NOW)

        assert manager.publish_now(article.id, NOW) is False
        assert article.status == STATUS_SCHEDULED

    def test_publish_now_already_published(self, store, manager, publish, make_article):
        done, = store.add_articles([make_article(status=STATUS_PUBLISHED)])
        assert manager.publish_now(done.id, NOW) is True
        publish.assert_not_called()

    def test_publish_now_unknown(self, manager):
        assert manager.publish_now(999, NOW) is None

    def test_publish_now_refuses_monitored_article(self, store, manager, publish, make_article):
        monitored, = store.add_articles([make_article(status=STATUS_MONITORING)])

        with pytest.raises(NotScheduledError):
            manager.publish_now(monitored.id, NOW)

        publish.assert_not_called()
        assert monitored.status == STATUS_MONITORING
        assert monitored.scheduled_at is None

    def test_from_config(self, store, publish):
        manager = ScheduleManager.from_config(store, publish, {
            "SCHEDULE_STEP_MINUTES": 10,
            "SCHEDULE_LEAD_MINUTES": 3,
            "PUBLISH_CATCH_UP": True,
        })
        assert manager.step.total_seconds() == 600
        assert manager.lead.total_seconds() == 180
        assert manager.catch_up is True
