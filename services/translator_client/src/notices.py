"""User-visible notices: the only way errors and outcomes reach the presentation layer."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class NoticeLevel(Enum):
    """Severity and routing of a notice."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    UPGRADE_REQUIRED = "upgrade_required"  # Routed to the upsell presentation


@dataclass
class Notice:
    """A dismissible message for the user."""

    text: str
    level: NoticeLevel = NoticeLevel.INFO
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert notice to dictionary."""
        return {
            "text": self.text,
            "level": self.level.value,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


NoticeListener = Callable[[Notice | None], Any]


class NoticeBoard:
    """Holds the current notice, expires it after a TTL and fans it out to listeners."""

    def __init__(self, ttl: float = 5.0, history_size: int = 50) -> None:
        """Initialize the notice board.

        Args:
            ttl: Seconds a notice stays current before it is dismissed
            history_size: Number of past notices kept for inspection
        """
        self.ttl = ttl
        self.history_size = history_size
        self.current: Notice | None = None
        self.history: list[Notice] = []
        self._listeners: list[NoticeListener] = []
        self._expiry: asyncio.TimerHandle | None = None

    def add_listener(self, listener: NoticeListener) -> None:
        self._listeners.append(listener)

    def post(self, text: str, level: NoticeLevel = NoticeLevel.INFO, **metadata: Any) -> Notice:
        """Show a notice, replacing the current one."""
        notice = Notice(text=text, level=level, metadata=metadata)
        self.current = notice
        self.history.append(notice)
        del self.history[: -self.history_size]
        logger.debug(f"Notice [{level.value}]: {text}")

        self._schedule_expiry(notice)
        self._notify(notice)
        return notice

    def info(self, text: str, **metadata: Any) -> Notice:
        return self.post(text, NoticeLevel.INFO, **metadata)

    def success(self, text: str, **metadata: Any) -> Notice:
        return self.post(text, NoticeLevel.SUCCESS, **metadata)

    def error(self, text: str, **metadata: Any) -> Notice:
        return self.post(text, NoticeLevel.ERROR, **metadata)

    def upgrade_required(self, text: str, **metadata: Any) -> Notice:
        return self.post(text, NoticeLevel.UPGRADE_REQUIRED, **metadata)

    def dismiss(self) -> None:
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
        if self.current is not None:
            self.current = None
            self._notify(None)

    def _schedule_expiry(self, notice: Notice) -> None:
        if self._expiry is not None:
            self._expiry.cancel()
            self._expiry = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): the notice stays until replaced
            return
        self._expiry = loop.call_later(self.ttl, self._expire, notice)

    def _expire(self, notice: Notice) -> None:
        if self.current is notice:
            self._expiry = None
            self.current = None
            self._notify(None)

    def _notify(self, notice: Notice | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception("Notice listener failed")
