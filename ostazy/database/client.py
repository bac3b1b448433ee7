from typing import Optional

import httpx

from ostazy.config.settings import Settings, settings as default_settings
from ostazy.database.auth import AuthClient
from ostazy.database.http import RequestHelper
from ostazy.database.location import MemoryLocation
from ostazy.database.query import QueryBuilder
from ostazy.database.session_store import FileSessionStore, MemorySessionStore, SessionStore
from ostazy.database.storage import StorageClient


class BackendClient:
    """Auth, table and storage access to the BaaS, sharing one request helper."""

    def __init__(
        self,
        url: str,
        key: str,
        session_store: Optional[SessionStore] = None,
        location: Optional[MemoryLocation] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        application_name: str = "ostazy",
        profiles_table: str = "user_profiles",
        timeout: Optional[float] = None,
    ):
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be configured")
        self.helper = RequestHelper(
            url,
            key,
            session_store or MemorySessionStore(),
            application_name=application_name,
            transport=transport,
            timeout=timeout,
        )
        self.location = location or MemoryLocation()
        self.auth = AuthClient(self.helper, self.location, profiles_table=profiles_table)
        self.storage = StorageClient(self.helper)

    @property
    def session_store(self) -> SessionStore:
        return self.helper.session_store

    def from_(self, table: str) -> QueryBuilder:
        return QueryBuilder(self.helper, table)

    def table(self, table: str) -> QueryBuilder:
        return self.from_(table)

    async def aclose(self) -> None:
        await self.helper.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_client(
    config: Optional[Settings] = None,
    session_store: Optional[SessionStore] = None,
    **kwargs,
) -> BackendClient:
    """Build a client from settings; the default session store is the durable file store."""
    config = config or default_settings
    if session_store is None:
        session_store = FileSessionStore(
            config.session_file, key=config.session_storage_key, legacy_key=config.legacy_session_key
        )
    return BackendClient(
        config.base_url,
        config.supabase_anon_key,
        session_store=session_store,
        application_name=config.application_name,
        profiles_table=config.profiles_table,
        timeout=config.request_timeout,
        **kwargs,
    )


class Backend:
    _client: BackendClient = None

    @classmethod
    def get_client(cls) -> BackendClient:
        if cls._client is None:
            cls._client = create_client()
        return cls._client

    @classmethod
    def reset_client(cls):
        cls._client = None


def get_backend() -> BackendClient:
    return Backend.get_client()


def reset_backend() -> None:
    Backend.reset_client()
