import pytest

from yoga_scheduler.errors import AlreadyRegistered, NetworkError, StorageError, StorageTimeout
from yoga_scheduler.rest_store import RestStore
from tests.helpers import FakeResponse, FakeSession, class_row, connection_error, timeout_error

BASE = "http://127.0.0.1:54321"


def _row(**extra):
    return {"id": "c1", **class_row(), **extra}


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def store(session, sleeps):
    return RestStore(BASE, "anon-key", session=session, sleep=sleeps.append)


def test_list_classes_request_shape(store, session):
    session.queue(FakeResponse(200, [_row()]))
    classes = store.list_classes()

    assert [c.id for c in classes] == ["c1"]
    (req,) = session.requests
    assert req["method"] == "GET"
    assert req["url"] == f"{BASE}/rest/v1/yoga_classes"
    assert req["params"]["order"] == "start_time.asc"
    assert req["timeout"] == 10.0
    assert req["headers"]["apikey"] == "anon-key"
    assert req["headers"]["Authorization"] == "Bearer anon-key"


def test_list_retries_once_after_timeout(store, session, sleeps):
    session.queue(timeout_error(), FakeResponse(200, [_row()]))
    assert len(store.list_classes()) == 1
    assert len(session.requests) == 2
    assert sleeps == [1.0]


def test_list_gives_up_after_second_timeout(store, session):
    session.queue(timeout_error(), timeout_error())
    with pytest.raises(StorageTimeout):
        store.list_classes()
    assert len(session.requests) == 2


def test_network_error_is_distinct_from_timeout(store, session):
    session.queue(connection_error(), connection_error())
    with pytest.raises(NetworkError) as info:
        store.list_classes()
    assert not isinstance(info.value, StorageTimeout)


def test_server_error_retried_client_error_not(store, session):
    session.queue(FakeResponse(503, {"message": "busy"}), FakeResponse(200, []))
    assert store.list_classes() == []

    session.queue(FakeResponse(400, {"message": "bad filter"}))
    with pytest.raises(StorageError) as info:
        store.list_classes()
    assert info.value.status == 400
    assert len(session.requests) == 3


def test_mutations_never_retry(store, session, sleeps):
    session.queue(timeout_error())
    with pytest.raises(StorageTimeout):
        store.create_class(class_row())
    assert len(session.requests) == 1
    assert sleeps == []

    session.queue(FakeResponse(500, {"message": "boom"}))
    with pytest.raises(StorageError) as info:
        store.update_class("c1", {"name": "x"})
    assert info.value.status == 500
    assert len(session.requests) == 2


def test_create_sends_representation_and_handles_missing_echo(store, session):
    session.queue(FakeResponse(201, [_row()]))
    created = store.create_class(class_row())
    req = session.requests[-1]
    assert req["method"] == "POST"
    assert req["headers"]["Prefer"] == "return=representation"
    assert req["json"]["created_at"] and req["json"]["updated_at"]
    assert created.id == "c1"

    session.queue(FakeResponse(201, []))
    assert store.create_class(class_row()) is None


@pytest.mark.parametrize("status,body", [(409, {"code": "23505", "message": "duplicate key"}), (400, {"code": "23505"})])
def test_duplicate_registration_is_already_registered(store, session, status, body):
    session.queue(FakeResponse(status, body))
    with pytest.raises(AlreadyRegistered):
        store.create_registration({"class_id": "c1", "user_id": "u1", "payment_amount": 12})


def test_patch_and_delete_target_by_id(store, session):
    session.queue(FakeResponse(200, [{"id": "r1", "class_id": "c1", "user_id": "u1", "payment_link_clicked": True}]))
    reg = store.update_registration("r1", {"payment_link_clicked": True})
    assert reg.payment_link_clicked is True
    assert session.requests[-1]["params"] == {"id": "eq.r1"}
    assert session.requests[-1]["method"] == "PATCH"

    session.queue(FakeResponse(204, None))
    assert store.delete_registration("r1") is True
    assert session.requests[-1]["method"] == "DELETE"
    assert session.requests[-1]["params"] == {"id": "eq.r1"}


def test_registrations_for_class_enriched_with_profiles(store, session):
    session.queue(
        FakeResponse(200, [
            {"id": "r1", "class_id": "c1", "user_id": "u1"},
            {"id": "r2", "class_id": "c1", "user_id": "u2"},
        ]),
        FakeResponse(200, [{"id": "u1", "email": "una@example.com"}]),
    )
    regs = {r.id: r for r in store.list_registrations_for_class("c1")}
    assert regs["r1"].profile.email == "una@example.com"
    assert regs["r2"].profile is None
    assert session.requests[1]["params"]["id"] == "in.(u1,u2)"


def test_profile_enrichment_failure_still_returns_registrations(store, session):
    session.queue(
        FakeResponse(200, [{"id": "r1", "class_id": "c1", "user_id": "u1"}]),
        FakeResponse(403, {"message": "permission denied"}),
    )
    regs = store.list_registrations_for_class("c1")
    assert [r.id for r in regs] == ["r1"]
    assert regs[0].profile is None


def test_with_token_sends_user_bearer_and_shares_session(store, session):
    user_store = store.with_token("user-jwt")
    assert user_store.session is session
    session.queue(FakeResponse(200, []))
    user_store.list_registrations_for_user("u1")
    req = session.requests[-1]
    assert req["headers"]["Authorization"] == "Bearer user-jwt"
    assert req["params"]["user_id"] == "eq.u1"


def test_active_waiver_query(store, session):
    session.queue(FakeResponse(200, [{"id": "w2", "title": "T", "content": "C", "is_active": True, "version": 2}]))
    waiver = store.get_active_waiver()
    assert waiver.version == 2
    params = session.requests[-1]["params"]
    assert params["is_active"] == "eq.true"
    assert params["order"] == "version.desc"
