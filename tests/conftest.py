"""Shared fixtures: an application over in-memory SQLite, no scheduler, no seeded credentials."""

from datetime import datetime

import pytest

from rt_intel.config import Config
from rt_intel.init import create_app, db
from rt_intel.models import Article
from rt_intel.store import IntelStore


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    START_SCHEDULER = False
    OPENAI_API_KEY = None
    TELEGRAM_TOKEN = None
    TELEGRAM_CHAT_ID = None
    TIMEZONE = "Asia/Riyadh"
    SCHEDULE_STEP_MINUTES = 15
    SCHEDULE_LEAD_MINUTES = 1
    PUBLISH_CATCH_UP = False


@pytest.fixture
def make_app():
    created = []

    def factory(**overrides):
        config_object = type("OverriddenConfig", (TestConfig,), overrides) if overrides else TestConfig
        app = create_app(config_object)
        created.append(app)
        return app

    yield factory

    for app in created:
        with app.app_context():
            db.session.remove()
            db.drop_all()


@pytest.fixture
def app(make_app):
    app = make_app()
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return IntelStore.from_app(app)


@pytest.fixture
def make_article():
    counter = {"n": 0}

    def factory(**overrides):
        counter["n"] += 1
        n = counter["n"]
        defaults = dict(
            url=f"https://arabic.rt.com/world/{n}-news/",
            original_title=f"عنوان أصلي {n}",
            original_body="نص الخبر الأصلي",
            title=f"عنوان {n}",
            body="نص الخبر بعد إعادة الصياغة",
            image_url=f"https://cdn.example/{n}.jpg",
            created_at=datetime(2025, 1, 1, 9, 0, n),
        )
        defaults.update(overrides)
        return Article(**defaults)

    return factory
