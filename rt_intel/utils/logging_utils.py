# rt_intel/utils/logging_utils.py
import logging
import os
from logging.handlers import RotatingFileHandler
import sys


def _rotating_handler(path, formatter):
    handler = RotatingFileHandler(
        path,
        maxBytes=10*1024*1024,  # 10 MB
        backupCount=5,
        encoding='utf-8',
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(app=None, log_level=logging.INFO, log_dir=None):
    """
    Set up logging for the application: the 'rt_intel' tree and the 'scraper'
    logger each get their own rotating file, both share the console.
    """
    log_dir = log_dir or os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'logs')
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)

    app_logger = logging.getLogger('rt_intel')
    app_logger.setLevel(log_level)
    app_logger.handlers = []  # Clear existing handlers
    app_logger.addHandler(console)
    app_logger.addHandler(_rotating_handler(os.path.join(log_dir, 'rt_intel.log'), formatter))

    scraper_logger = logging.getLogger('scraper')
    scraper_logger.setLevel(log_level)
    scraper_logger.handlers = []  # Clear existing handlers
    scraper_logger.addHandler(console)
    scraper_logger.addHandler(_rotating_handler(os.path.join(log_dir, 'scraper.log'), formatter))

    # APScheduler reports every job run at INFO
    logging.getLogger('apscheduler').setLevel(logging.WARNING)

    if app:
        app.logger.handlers = []  # Clear existing handlers
        for handler in app_logger.handlers:
            app.logger.addHandler(handler)
        app.logger.setLevel(log_level)

    return {
        'app_logger': app_logger,
        'scraper_logger': scraper_logger
    }
