# rt_intel/init.py
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask import Flask
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()
migrate = Migrate()


def create_app(config_object='rt_intel.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    migrate.init_app(app, db)

    # Register models and prepare the store
    with app.app_context():
        from . import models  # noqa: F401
        from .store import IntelStore

        db.create_all()
        IntelStore.from_app(app).initialize()

    from rt_intel.health import health_bp
    from rt_intel.api import api_bp
    app.register_blueprint(health_bp, url_prefix='/health')
    app.register_blueprint(api_bp)

    return app
