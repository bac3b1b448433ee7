from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Optional


class Session(BaseModel):
    """Bearer-token bundle persisted by the session store."""
    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user: Optional[Dict[str, Any]] = None


class APIResponse(BaseModel):
    """Result of a table query: `error` is the parsed body of a failed response."""
    data: Any = None
    error: Any = None
    count: Optional[int] = None


class AuthResponse(BaseModel):
    """Result of an auth or storage call. Failures never raise, they land in `error`."""
    data: Any = None
    error: Any = None
