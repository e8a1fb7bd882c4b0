"""
Change notification bus.

Views re-fetch when a topic's version moves. Publishing is fire-and-forget:
subscriber errors are logged and never reach the publisher.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List

from logging_config import get_logger

logger = get_logger(__name__)

MEDICINES = "medicines"
BILLS = "bills"


@dataclass(frozen=True)
class ChangeEvent:
    topic: str
    version: int
    published_at: datetime


Subscriber = Callable[[ChangeEvent], None]


class ChangeBus:
    def __init__(self) -> None:
        self._versions: Dict[str, int] = {}
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def publish(self, topic: str) -> ChangeEvent:
        with self._lock:
            version = self._versions.get(topic, 0) + 1
            self._versions[topic] = version
            subscribers = list(self._subscribers)

        event = ChangeEvent(topic=topic, version=version, published_at=datetime.now(timezone.utc))
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.warning("change_subscriber_failed", topic=topic, exc_info=True)
        logger.debug("change_published", topic=topic, version=version)
        return event

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def versions(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._versions)


change_bus = ChangeBus()
