"""
Darwin-style broadcast notifications.

A named, payload-less signal. Posting only tells observers "something
changed, go re-read the shared store"; there is no delivery guarantee and
no data. Observers run synchronously on the posting thread
(deliverImmediately); a failing observer is logged and never stops the
others.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

# Must match the name posted by the generated App Intents.
SHORTCUT_NOTIFICATION = "eu.eblank.likrot.iosintents.shortcut"

Observer = Callable[[str], None]


class NotificationCenter:
    """Registry of observers keyed by notification name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: dict[int, tuple[str, Observer]] = {}
        self._tokens = itertools.count(1)

    def add_observer(self, name: str, callback: Observer) -> int:
        """Register callback for name; returns a token for remove_observer()."""
        with self._lock:
            token = next(self._tokens)
            self._observers[token] = (name, callback)
        return token

    def remove_observer(self, token: int) -> bool:
        with self._lock:
            return self._observers.pop(token, None) is not None

    def observer_count(self, name: str | None = None) -> int:
        with self._lock:
            if name is None:
                return len(self._observers)
            return sum(1 for n, _ in self._observers.values() if n == name)

    def post(self, name: str) -> int:
        """Deliver name to every current observer; returns how many ran."""
        with self._lock:
            targets = [cb for n, cb in self._observers.values() if n == name]
        delivered = 0
        for callback in targets:
            try:
                callback(name)
                delivered += 1
            except Exception:
                logger.exception("Observer for %s raised", name)
        return delivered


_default_center: NotificationCenter | None = None
_default_lock = threading.Lock()


def darwin_notify_center() -> NotificationCenter:
    """Process-wide center, the analogue of CFNotificationCenterGetDarwinNotifyCenter()."""
    global _default_center
    with _default_lock:
        if _default_center is None:
            _default_center = NotificationCenter()
        return _default_center
