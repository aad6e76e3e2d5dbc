import pytest

from yoga_scheduler import create_app
from yoga_scheduler.sql_store import SqlStore
from tests.helpers import NOW, TZ, FakeAuth, FakeStore, RecordingNotifier


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def sql_store():
    s = SqlStore("sqlite://")
    s.init_schema()
    return s


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fake_auth():
    return FakeAuth()


@pytest.fixture
def app(store, notifier, fake_auth):
    return create_app(
        config={"TESTING": True, "SECRET_KEY": "test-secret", "TZ_NAME": TZ, "STORAGE_BACKEND": "sql"},
        store=store,
        auth=fake_auth,
        notifier=notifier,
        clock=lambda: NOW,
    )


@pytest.fixture
def client(app):
    return app.test_client()
