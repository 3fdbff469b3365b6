from collections import deque
from dataclasses import dataclass, asdict

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"

    def to_dict(self) -> dict:
        return asdict(self)


class Notifier:
    """Collects user-facing, non-blocking notifications (the portal's toasts)."""

    def __init__(self, maxlen: int = 50):
        self._history: deque[Notification] = deque(maxlen=maxlen)

    def notify(self, title: str, description: str, variant: str = "default") -> Notification:
        notification = Notification(title=title, description=description, variant=variant)
        self._history.append(notification)
        logger.info("user_notification", title=title, variant=variant)
        return notification

    def success(self, title: str, description: str) -> Notification:
        return self.notify(title, description)

    def failure(self, title: str, description: str) -> Notification:
        return self.notify(title, description, variant="destructive")

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def drain(self) -> list[Notification]:
        items = list(self._history)
        self._history.clear()
        return items
