"""Tests for the per-session dashboard registry."""

import pytest

from src.launchpad import session_store
from src.launchpad.adapter import LiveStoreAdapter
from src.launchpad.auth import AuthContext
from src.launchpad.notifier import NotificationDispatcher
from src.launchpad.orchestrator import ViewOrchestrator


@pytest.fixture(autouse=True)
def clean_sessions():
    session_store.reset()
    yield
    session_store.reset()


@pytest.fixture
def factory(store, transport):
    def build(session_id):
        auth = AuthContext()
        orchestrator = ViewOrchestrator(LiveStoreAdapter(store, auth), NotificationDispatcher(transport), auth)
        return session_store.DashboardSession(session_id, auth, orchestrator)

    return build


def test_get_or_create_reuses_session(factory):
    first = session_store.get_or_create("abc", factory)
    second = session_store.get_or_create("abc", factory)

    assert first is second
    assert session_store.count() == 1
    assert session_store.get("abc") is first


def test_empty_session_id(factory):
    with pytest.raises(ValueError):
        session_store.get_or_create("", factory)
    assert session_store.get("") is None


def test_drop(factory):
    session_store.get_or_create("abc", factory)
    session_store.drop("abc")
    session_store.drop("abc")
    assert session_store.get("abc") is None


def test_oldest_session_is_evicted(factory, monkeypatch):
    monkeypatch.setattr(session_store, "_MAX_SESSIONS", 2)

    for session_id in ("a", "b", "c"):
        session_store.get_or_create(session_id, factory)

    assert session_store.count() == 2
    assert session_store.get("a") is None
    assert session_store.get("c") is not None


def test_recently_used_session_survives_eviction(factory, monkeypatch):
    monkeypatch.setattr(session_store, "_MAX_SESSIONS", 2)
    session_store.get_or_create("a", factory)
    session_store.get_or_create("b", factory)

    session_store.get_or_create("a", factory)
    session_store.get_or_create("c", factory)

    assert session_store.get("a") is not None
    assert session_store.get("b") is None
