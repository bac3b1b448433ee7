"""
Role configuration.
Roles are read from the user record (or its user_metadata); anything missing is
treated as a plain "user". Higher roles include every lower one.
"""
from typing import Any, Dict, Optional

DEFAULT_ROLE = "user"

# Lowest to highest
ROLE_HIERARCHY = ["user", "moderator", "admin"]


def resolve_role(user: Optional[Dict[str, Any]]) -> Optional[str]:
    """Role for a user dict, None when signed out"""
    if not user:
        return None
    metadata = user.get("user_metadata") or {}
    return user.get("role") or metadata.get("role") or DEFAULT_ROLE


def has_access(role: Optional[str], required_role: str = DEFAULT_ROLE) -> bool:
    if required_role == DEFAULT_ROLE:
        return True
    if role not in ROLE_HIERARCHY or required_role not in ROLE_HIERARCHY:
        return False
    return ROLE_HIERARCHY.index(role) >= ROLE_HIERARCHY.index(required_role)


def role_flags(role: Optional[str]) -> Dict[str, bool]:
    return {
        "is_admin": role == "admin",
        "is_moderator": role == "moderator",
        "is_moderator_or_admin": role in ("moderator", "admin"),
        "is_user": role == "user",
    }
