from typing import Any, Optional


class BackendError(Exception):
    """Raised by the application services when the backend reports an error."""

    def __init__(self, detail: str, error: Any = None, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.error = error
        self.status_code = status_code


def error_message(error: Any) -> str:
    """Best human-readable message from a backend error body or exception."""
    if isinstance(error, dict):
        for key in ("message", "msg", "error_description", "error"):
            if error.get(key):
                return str(error[key])
        return str(error)
    return str(error)
