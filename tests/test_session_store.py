"""Tests for session persistence."""

import json

import pytest

from ostazy.config.settings import Settings
from ostazy.database.client import BackendClient, create_client
from ostazy.database.schemas import Session
from ostazy.database.session_store import FileSessionStore, MemorySessionStore


@pytest.fixture
def session_file(tmp_path):
    return tmp_path / "state" / "session.json"


def test_memory_store():
    store = MemorySessionStore()
    assert store.get() is None
    session = Session(access_token="a", refresh_token="r", expires_in=60)
    store.set(session)
    assert store.get() == session
    store.clear()
    assert store.get() is None


def test_file_store_round_trip(session_file):
    store = FileSessionStore(str(session_file))
    session = Session(access_token="a", refresh_token="r", expires_in=3600, user={"id": "u1"})
    store.set(session)

    reopened = FileSessionStore(str(session_file))
    assert reopened.get() == session
    stored = json.loads(session_file.read_text())
    assert json.loads(stored["sb-auth-token"])["access_token"] == "a"


def test_file_store_keeps_unrelated_keys(session_file):
    session_file.parent.mkdir(parents=True)
    session_file.write_text(json.dumps({"theme": "dark"}))
    store = FileSessionStore(str(session_file))
    store.set(Session(access_token="a"))
    store.clear()
    assert json.loads(session_file.read_text()) == {"theme": "dark"}


def test_file_store_reads_and_clears_legacy_key(session_file):
    session_file.parent.mkdir(parents=True)
    session_file.write_text(json.dumps({"sb-session": json.dumps({"access_token": "legacy"})}))
    store = FileSessionStore(str(session_file))
    assert store.get().access_token == "legacy"
    store.clear()
    assert store.get() is None
    assert json.loads(session_file.read_text()) == {}


def test_file_store_ignores_corrupt_values(session_file):
    session_file.parent.mkdir(parents=True)
    session_file.write_text(json.dumps({"sb-auth-token": "{not json"}))
    assert FileSessionStore(str(session_file)).get() is None

    session_file.write_text("garbage")
    assert FileSessionStore(str(session_file)).get() is None


def test_missing_configuration_is_fatal():
    with pytest.raises(ValueError):
        BackendClient("", "key")
    with pytest.raises(ValueError):
        create_client(Settings(supabase_url="https://x.supabase.co", supabase_anon_key=""))


def test_create_client_from_settings(session_file):
    config = Settings(
        supabase_url="https://x.supabase.co/",
        supabase_anon_key="anon",
        session_file=str(session_file),
        session_storage_key="custom-key",
    )
    client = create_client(config)
    assert client.helper.base_url == "https://x.supabase.co"
    assert isinstance(client.session_store, FileSessionStore)
    assert client.session_store.key == "custom-key"


def test_default_backend_is_shared(monkeypatch, session_file):
    from ostazy.database import client as client_module

    config = Settings(supabase_url="https://x.supabase.co", supabase_anon_key="anon", session_file=str(session_file))
    monkeypatch.setattr(client_module, "default_settings", config)
    client_module.reset_backend()
    try:
        backend = client_module.get_backend()
        assert client_module.get_backend() is backend
        assert backend.table("grades").table == "grades"
    finally:
        client_module.reset_backend()
