"""Request/header helper shared by the auth, query and storage facets."""
import logging
from typing import Any, Dict, Optional

import httpx

from ostazy.database.session_store import SessionStore

logger = logging.getLogger(__name__)

OBJECT_ACCEPT = "application/vnd.pgrst.object+json"


class RequestHelper:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        session_store: SessionStore,
        application_name: str = "ostazy",
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session_store = session_store
        self.application_name = application_name
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(transport=transport, timeout=timeout)

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def current_token(self) -> Optional[str]:
        session = self.session_store.get()
        return session.access_token if session else None

    def headers(self, token: Optional[str] = None, json_body: bool = True) -> Dict[str, str]:
        """Default headers; the bearer token falls back to the stored session."""
        headers = {
            "apikey": self.api_key,
            "x-application-name": self.application_name,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        token = token or self.current_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        json: Any = None,
        content: Optional[bytes] = None,
    ) -> httpx.Response:
        logger.debug(f"{method} {path}")
        return await self.http.request(method, self.url(path), headers=headers, json=json, content=content)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()


def decode_body(response: httpx.Response) -> Any:
    """JSON body, or None when the response carries none."""
    if not response.content:
        return None
    return response.json()
