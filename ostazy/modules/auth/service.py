import logging
from typing import Any, Dict, Optional

from ostazy.core.errors import BackendError, error_message
from ostazy.database.auth import SIGNED_IN, Subscription
from ostazy.database.client import BackendClient
from ostazy.modules.auth.roles import resolve_role
from ostazy.modules.auth.schemas import AppUser, AuthError, AuthState, SignInRequest, SignUpRequest

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth"


def to_app_user(user: Dict[str, Any]) -> AppUser:
    """Flatten a backend user into the shape the application works with"""
    metadata = user.get("user_metadata") or {}
    return AppUser(
        id=str(user["id"]),
        email=user.get("email"),
        full_name=metadata.get("full_name") or user.get("email"),
        role=resolve_role(user),
        metadata=metadata,
    )


def _is_auth_required(error: Any) -> bool:
    if not isinstance(error, dict):
        return False
    return error.get("code") in (401, 403) or error.get("status") in (401, 403)


class AuthService:
    def __init__(self, client: BackendClient):
        self.client = client
        self.state = AuthState()
        self._subscription: Optional[Subscription] = None

    def _set_user(self, user: Optional[Dict[str, Any]]) -> None:
        if user:
            self.state.user = to_app_user(user)
            self.state.is_authenticated = True
        else:
            self.state.user = None
            self.state.is_authenticated = False
        self.state.is_loading = False

    async def _on_auth_event(self, event: str, payload: Optional[Dict[str, Any]]) -> None:
        logger.info(f"Auth state changed: {event}")
        user = (payload or {}).get("user")
        if event == SIGNED_IN and not user:
            # OAuth restores carry only tokens
            await self.check_user_auth()
            return
        self._set_user(user if event == SIGNED_IN else None)

    async def start(self) -> AuthState:
        """Load the current state and follow later auth changes"""
        await self.check_app_state()
        if self._subscription is None:
            self._subscription = await self.client.auth.on_auth_state_change(self._on_auth_event)
        return self.state

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def check_app_state(self) -> AuthState:
        """Authentication status from the stored session, no network call unless an OAuth redirect is pending"""
        self.state.is_loading = True
        self.state.auth_error = None
        result = await self.client.auth.get_session()
        session = (result.data or {}).get("session")
        if result.error:
            logger.error(f"Session check failed: {result.error}")
            self.state.auth_error = AuthError(type="auth_error", message=error_message(result.error))
            self._set_user(None)
        else:
            self._set_user(session.user if session is not None else None)
        return self.state

    async def check_user_auth(self) -> AuthState:
        """Authentication status confirmed against the auth server"""
        self.state.is_loading = True
        result = await self.client.auth.get_user()
        if result.error:
            logger.error(f"User auth check failed: {result.error}")
            if _is_auth_required(result.error):
                self.state.auth_error = AuthError(type="auth_required", message="Authentication required")
            self._set_user(None)
            return self.state
        self._set_user((result.data or {}).get("user"))
        return self.state

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        request = SignInRequest(email=email, password=password)
        result = await self.client.auth.sign_in_with_password(request.email, request.password)
        if result.error:
            logger.error(f"Sign in error: {result.error}")
            raise BackendError(error_message(result.error), error=result.error, status_code=401)
        if result.data.get("user"):
            self._set_user(result.data["user"])
        return result.data

    async def sign_up(self, sign_up_data: SignUpRequest) -> Dict[str, Any]:
        metadata = {}
        if sign_up_data.full_name:
            metadata["full_name"] = sign_up_data.full_name
        if sign_up_data.role:
            metadata["role"] = sign_up_data.role
        result = await self.client.auth.sign_up(sign_up_data.email, sign_up_data.password, metadata)
        if result.error:
            logger.error(f"Sign up error: {result.error}")
            raise BackendError(error_message(result.error), error=result.error, status_code=400)
        return result.data

    async def logout(self, should_redirect: bool = True) -> None:
        await self.client.auth.sign_out()
        self._set_user(None)
        if should_redirect:
            self.navigate_to_login()

    def navigate_to_login(self) -> None:
        self.client.location.redirect(f"{self.client.location.origin}{LOGIN_PATH}")
