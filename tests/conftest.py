"""Shared test fixtures."""

import httpx
import pytest

from ostazy.database.client import BackendClient
from ostazy.database.location import MemoryLocation
from ostazy.database.session_store import MemorySessionStore
from tests.helpers import API_KEY, BASE_URL, run
from tests.stub_backend import StubBackend


@pytest.fixture
def stub():
    return StubBackend()


@pytest.fixture
def location():
    return MemoryLocation("http://app.test/dashboard")


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def client(stub, location, session_store):
    return BackendClient(
        BASE_URL,
        API_KEY,
        session_store=session_store,
        location=location,
        transport=httpx.ASGITransport(app=stub.app),
    )


@pytest.fixture
def student(stub):
    return stub.add_user("student@example.com", "SecureTestPass123", user_metadata={"full_name": "Sara", "role": "user"})


@pytest.fixture
def signed_in(client, student):
    result = run(client.auth.sign_in_with_password("student@example.com", "SecureTestPass123"))
    assert result.error is None
    return result.data["session"]
