# rt_intel/scheduler.py

from apscheduler.schedulers.background import BackgroundScheduler
import pytz
import logging

from rt_intel.store import IntelStore
from rt_intel.workflow import STATUS_SUCCESS, build_schedule_manager, local_now

# Set up logger
logger = logging.getLogger('rt_intel.scheduler')


def autopublish_tick(app):
    """
    One autopilot pass. Does nothing until the Telegram connection has been
    verified, then lets the schedule manager publish whatever is due.
    Returns the id of the published article, if any.
    """
    with app.app_context():
        store = IntelStore.from_app(app)
        if store.telegram_settings()["status"] != STATUS_SUCCESS:
            return None
        try:
            manager = build_schedule_manager(store, app.config)
            article = manager.tick(local_now(app.config))
            return article.id if article else None
        except Exception as e:
            logger.error(f"Error in autopublish task: {e}", exc_info=True)
            return None


def start_scheduler(app):
    """
    Starts the autopilot: one tick every AUTOPUBLISH_INTERVAL_SECONDS.
    """
    scheduler = BackgroundScheduler(timezone=pytz.timezone(app.config.get('TIMEZONE', 'Asia/Riyadh')))

    scheduler.add_job(
        autopublish_tick,
        'interval',
        seconds=app.config.get('AUTOPUBLISH_INTERVAL_SECONDS', 20),
        args=[app],
        id='autopublish',
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started (timezone {app.config.get('TIMEZONE')})")
    return scheduler
