"""
Transient toast-style notifications.
Nothing here blocks or retries; the screen drains pending messages when it renders.
"""
import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from propdesk.models.views import Notification

logger = logging.getLogger(__name__)


class Notifier:
    """Collects notifications until the next render drains them."""

    def __init__(self, max_pending: int = 50):
        self._pending: Deque[Notification] = deque(maxlen=max_pending)

    def _emit(self, level: str, message: str, key: Optional[str] = None) -> Notification:
        if key is not None:
            self.dismiss(key)
        note = Notification(
            level=level, message=message, key=key,
            created_at=datetime.now().isoformat(),
        )
        self._pending.append(note)
        return note

    def success(self, message: str, key: Optional[str] = None) -> Notification:
        logger.info(f"[NOTIFY] {message}")
        return self._emit("success", message, key)

    def error(self, message: str, key: Optional[str] = None) -> Notification:
        logger.error(f"[NOTIFY] {message}")
        return self._emit("error", message, key)

    def loading(self, message: str, key: str) -> Notification:
        logger.debug(f"[NOTIFY] {message}")
        return self._emit("loading", message, key)

    def dismiss(self, key: str) -> None:
        """Remove a keyed notification (e.g. a loading toast once work finishes)."""
        self._pending = deque(
            (n for n in self._pending if n.key != key), maxlen=self._pending.maxlen
        )

    @property
    def pending(self) -> List[Notification]:
        return list(self._pending)

    def drain(self) -> List[Notification]:
        notes = list(self._pending)
        self._pending.clear()
        return notes
