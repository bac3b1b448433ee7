"""
Authentication facet: GoTrue endpoints plus local session persistence.

Every call returns an AuthResponse; HTTP failures and transport errors are
reported through `error` instead of being raised.
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import urlencode

import httpx

from ostazy.database.http import OBJECT_ACCEPT, RequestHelper, decode_body
from ostazy.database.location import MemoryLocation
from ostazy.database.schemas import AuthResponse, Session

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthCallback = Callable[[str, Optional[Dict[str, Any]]], Union[None, Awaitable[None]]]


class Subscription:
    def __init__(self, listeners: List[AuthCallback], callback: AuthCallback):
        self._listeners = listeners
        self.callback = callback

    @property
    def active(self) -> bool:
        return self.callback in self._listeners

    def unsubscribe(self) -> None:
        if self.callback in self._listeners:
            self._listeners.remove(self.callback)
            logger.debug("Auth listener unsubscribed")


class AuthClient:
    def __init__(self, helper: RequestHelper, location: MemoryLocation, profiles_table: str = "user_profiles"):
        self.helper = helper
        self.location = location
        self.profiles_table = profiles_table
        self._listeners: List[AuthCallback] = []

    @property
    def store(self):
        return self.helper.session_store

    async def _post(self, path: str, payload: Optional[Dict[str, Any]], token: Optional[str] = None) -> httpx.Response:
        return await self.helper.request("POST", path, self.helper.headers(token), json=payload)

    async def sign_up(self, email: str, password: str, profile_data: Optional[Dict[str, Any]] = None) -> AuthResponse:
        try:
            response = await self._post("/auth/v1/signup", {"email": email, "password": password, "data": profile_data})
            data = decode_body(response)
            if not response.is_success:
                logger.error(f"Sign up error: {data}")
                return AuthResponse(data=None, error=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Sign up error: {e}")
            return AuthResponse(data=None, error=e)

        # Auto-confirmed projects answer with a full token payload
        if isinstance(data, dict) and data.get("access_token"):
            session = Session.model_validate(data)
            self.store.set(session)
            await self._notify(SIGNED_IN, {"user": session.user})
        return AuthResponse(data=data, error=None)

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        try:
            response = await self._post("/auth/v1/token?grant_type=password", {"email": email, "password": password})
            data = decode_body(response)
            if not response.is_success:
                logger.error(f"Sign in error: {data}")
                return AuthResponse(data=None, error=data)
            session = Session.model_validate(data)
        except (httpx.HTTPError, ValueError) as e:
            # ValidationError is a ValueError: a 2xx body without a token
            logger.error(f"Sign in error: {e}")
            return AuthResponse(data=None, error=e)

        self.store.set(session)
        logger.info("User signed in successfully")
        await self._notify(SIGNED_IN, {"user": session.user})
        return AuthResponse(data={"session": session, "user": session.user}, error=None)

    def authorize_url(
        self,
        provider: str,
        redirect_to: Optional[str] = None,
        scopes: Optional[str] = None,
        query_params: Optional[Dict[str, str]] = None,
    ) -> str:
        params = [("provider", provider), ("redirect_to", redirect_to or self.location.origin)]
        params.extend((query_params or {}).items())
        if scopes:
            params.append(("scopes", scopes))
        return self.helper.url(f"/auth/v1/authorize?{urlencode(params)}")

    async def sign_in_with_oauth(
        self,
        provider: str,
        redirect_to: Optional[str] = None,
        scopes: Optional[str] = None,
        query_params: Optional[Dict[str, str]] = None,
    ) -> AuthResponse:
        """Redirect to the provider. The session arrives later in the URL fragment, see get_session()."""
        url = self.authorize_url(provider, redirect_to, scopes, query_params)
        logger.info(f"Redirecting to OAuth provider: {provider}")
        self.location.redirect(url)
        return AuthResponse(data={"url": url, "provider": provider}, error=None)

    async def sign_out(self) -> AuthResponse:
        session = self.store.get()
        if session is not None and session.access_token:
            try:
                response = await self._post("/auth/v1/logout", None, token=session.access_token)
                if response.is_success:
                    logger.info("User signed out successfully")
                else:
                    logger.warning(f"Sign out error: {response.status_code} {response.text}")
            except httpx.HTTPError as e:
                logger.warning(f"Sign out error: {e}")
        self.store.clear()
        await self._notify(SIGNED_OUT, None)
        return AuthResponse(error=None)

    def _session_from_fragment(self) -> Optional[Session]:
        params = self.location.fragment_params()
        access_token = params.get("access_token")
        if not access_token:
            return None
        try:
            expires_in = int(params.get("expires_in") or 3600)
        except ValueError:
            expires_in = 3600
        return Session(
            access_token=access_token,
            refresh_token=params.get("refresh_token"),
            token_type=params.get("token_type") or "bearer",
            expires_in=expires_in,
            user=None,
        )

    async def get_session(self) -> AuthResponse:
        oauth_session = self._session_from_fragment()
        if oauth_session is not None:
            self.store.set(oauth_session)
            self.location.strip_fragment()
            logger.info("Session restored from OAuth redirect")
            await self._notify(SIGNED_IN, {"user": oauth_session.user})
            return AuthResponse(data={"session": oauth_session}, error=None)
        return AuthResponse(data={"session": self.store.get()}, error=None)

    async def get_user(self) -> AuthResponse:
        await self.get_session()
        session = self.store.get()
        if session is None:
            return AuthResponse(data={"user": None}, error=None)
        try:
            response = await self.helper.request(
                "GET", "/auth/v1/user", self.helper.headers(session.access_token, json_body=False)
            )
            user = decode_body(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Get user error: {e}")
            return AuthResponse(data={"user": None}, error=e)
        if not response.is_success:
            if response.status_code in (401, 403):
                # Stale token: drop it so the next call reports signed out
                self.store.clear()
            return AuthResponse(data={"user": None}, error=user)
        return AuthResponse(data={"user": user}, error=None)

    async def get_current_user_with_profile(self) -> Optional[Dict[str, Any]]:
        result = await self.get_user()
        user = (result.data or {}).get("user")
        if result.error or not user:
            return None
        session = self.store.get()
        if session is None:
            return user
        headers = self.helper.headers(session.access_token, json_body=False)
        headers["Accept"] = OBJECT_ACCEPT
        try:
            response = await self.helper.request(
                "GET", f"/rest/v1/{self.profiles_table}?id=eq.{user.get('id')}", headers
            )
            if not response.is_success:
                return user
            profile = decode_body(response)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching profile: {e}")
            return None
        if not isinstance(profile, dict):
            logger.warning(f"Unexpected profile payload for user {user.get('id')}: {profile!r}")
            return user
        logger.info("User profile loaded")
        return {**user, **profile}

    async def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        """Register a listener.

        The listener is called once right away with the current state, then on
        every sign-in, OAuth session restore and sign-out until unsubscribed.
        """
        result = await self.get_user()
        user = (result.data or {}).get("user")
        self._listeners.append(callback)
        if user:
            await self._call(callback, SIGNED_IN, {"user": user})
        else:
            await self._call(callback, SIGNED_OUT, None)
        return Subscription(self._listeners, callback)

    async def _notify(self, event: str, payload: Optional[Dict[str, Any]]) -> None:
        for callback in list(self._listeners):
            await self._call(callback, event, payload)

    async def _call(self, callback: AuthCallback, event: str, payload: Optional[Dict[str, Any]]) -> None:
        try:
            result = callback(event, payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Auth listener failed on {event}: {e}")
