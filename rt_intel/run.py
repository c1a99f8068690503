# rt_intel/run.py
import os
from rt_intel.init import create_app
from rt_intel.scheduler import start_scheduler
from rt_intel.utils.logging_utils import setup_logging

# Create the application; init.py has loaded .env by now
app = create_app()
setup_logging(app, log_level=app.config['LOG_LEVEL_VALUE'])

if app.config.get('START_SCHEDULER'):
    start_scheduler(app)


def main():
    app.run(host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "5000")))


if __name__ == "__main__":
    main()
