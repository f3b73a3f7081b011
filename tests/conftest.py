from __future__ import annotations

import pytest

from app import create_app
from notification_hub import NotificationHub
from notification_store import NotificationStore

SIGNATURE_ENV = (
    "WEBHOOK_SECRET",
    "WEBHOOK_SIGNATURE_REQUIRED",
    "WEBHOOK_SIGNATURE_HEADER",
    "EVENTS_KEEPALIVE_SECONDS",
    "WEBHOOK_DEBUG_DUMP_EVENT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # A developer's .env must not leak secrets into the tests.
    monkeypatch.setattr("app.load_dotenv", lambda *a, **kw: False)
    for key in SIGNATURE_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def store() -> NotificationStore:
    return NotificationStore()


@pytest.fixture()
def hub(store: NotificationStore) -> NotificationHub:
    return NotificationHub(store, keepalive_interval=30.0)


@pytest.fixture()
def app(store: NotificationStore, hub: NotificationHub):
    flask_app = create_app(store=store, hub=hub)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
