"""
Session Service - PropDesk back-office
Holds the authenticated user + bearer token and persists them to a small
JSON key-value store so a restart keeps the operator logged in.
"""
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import jwt

from propdesk.config import get_settings
from propdesk.models import User

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


def token_expired(token: str, now: Optional[float] = None) -> bool:
    """
    Check the `exp` claim of a bearer token without verifying its signature
    (the API owns the secret). Opaque tokens are treated as non-expiring.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return False
    exp = payload.get("exp")
    if exp is None:
        return False
    return float(exp) <= (now if now is not None else time.time())


class SessionStore:
    """Durable key-value store backed by a JSON file."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or get_settings().session_file)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[SESSION] Unreadable session store {self.path}: {e}")
            return {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class Session:
    """
    Authenticated session context.

    Populated at login (or from the store at startup) and cleared on logout
    or on any 401 from the API. Every component that issues requests receives
    the session explicitly.
    """

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store
        self.user: Optional[User] = None
        self.token: Optional[str] = None
        self._on_clear: List[Callable[[], None]] = []

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.token)

    def load(self) -> bool:
        """Read the persisted token + user once at startup."""
        if self.store is None:
            return False
        token = self.store.get(TOKEN_KEY)
        user = self.store.get(USER_KEY)
        if token and user:
            if token_expired(token):
                logger.info("[SESSION] Stored token expired, discarding")
                self.store.remove(TOKEN_KEY)
                self.store.remove(USER_KEY)
                return False
            self.token = token
            self.user = User.model_validate(user)
            logger.info(f"[SESSION] Restored session for {self.user.phone or self.user.id}")
            return True
        return False

    def populate(self, user: User, token: str) -> None:
        self.user = user
        self.token = token
        if self.store is not None:
            self.store.set(TOKEN_KEY, token)
            self.store.set(USER_KEY, user.to_wire())
        logger.info(f"[SESSION] Logged in as {user.phone or user.id}")

    def on_clear(self, callback: Callable[[], None]) -> None:
        """Register a callback run after the session is torn down (login redirect)."""
        self._on_clear.append(callback)

    def clear(self) -> None:
        self.user = None
        self.token = None
        if self.store is not None:
            self.store.remove(TOKEN_KEY)
            self.store.remove(USER_KEY)
        logger.info("[SESSION] Session cleared")
        for callback in self._on_clear:
            callback()

    def auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}
