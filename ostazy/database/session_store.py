"""Session persistence: the one piece of shared mutable state the client keeps."""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from ostazy.database.schemas import Session

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    @abstractmethod
    def get(self) -> Optional[Session]:
        ...

    @abstractmethod
    def set(self, session: Session) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemorySessionStore(SessionStore):
    def __init__(self, session: Optional[Session] = None):
        self._lock = threading.Lock()
        self._session = session

    def get(self) -> Optional[Session]:
        with self._lock:
            return self._session

    def set(self, session: Session) -> None:
        with self._lock:
            self._session = session

    def clear(self) -> None:
        with self._lock:
            self._session = None


class FileSessionStore(SessionStore):
    """Durable key/value JSON file, laid out like browser localStorage.

    The session is stored serialized under `key`; `legacy_key` is only read as a
    fallback and removed on clear().
    """

    def __init__(self, path: str, key: str = "sb-auth-token", legacy_key: Optional[str] = "sb-session"):
        self.path = Path(path).expanduser()
        self.key = key
        self.legacy_key = legacy_key
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                items = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable session file {self.path}: {e}")
            return {}
        return items if isinstance(items, dict) else {}

    def _write(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self) -> Optional[Session]:
        with self._lock:
            items = self._read()
        raw = items.get(self.key)
        if raw is None and self.legacy_key:
            raw = items.get(self.legacy_key)
        if raw is None:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring corrupt session under {self.key}: {e.error_count()} errors")
            return None

    def set(self, session: Session) -> None:
        with self._lock:
            items = self._read()
            items[self.key] = session.model_dump_json()
            self._write(items)

    def clear(self) -> None:
        with self._lock:
            items = self._read()
            removed = items.pop(self.key, None) is not None
            if self.legacy_key:
                removed = items.pop(self.legacy_key, None) is not None or removed
            if removed:
                self._write(items)
