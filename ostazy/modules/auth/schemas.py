from pydantic import BaseModel, EmailStr
from typing import Any, Dict, Optional


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    role: Optional[str] = None


class AppUser(BaseModel):
    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: str = "user"
    metadata: Dict[str, Any] = {}


class AuthError(BaseModel):
    type: str  # auth_error | auth_required | unknown
    message: str


class AuthState(BaseModel):
    user: Optional[AppUser] = None
    is_authenticated: bool = False
    is_loading: bool = True
    auth_error: Optional[AuthError] = None
