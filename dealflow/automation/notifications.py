"""
Dealflow Notification Sinks

Fire-and-forget status messages (the UI toast in the host application).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from dealflow.automation.types import utcnow

logger = structlog.get_logger(__name__)


class NotificationSink:
    """Base class for notification sinks."""

    async def send(
        self,
        level: str,
        message: str,
        recipients: Optional[List[str]] = None,
        **metadata: Any,
    ) -> None:
        """Deliver a human-readable message."""
        raise NotImplementedError

    async def info(self, message: str, **metadata: Any) -> None:
        await self.send("info", message, **metadata)

    async def error(self, message: str, **metadata: Any) -> None:
        await self.send("error", message, **metadata)


class LogNotificationSink(NotificationSink):
    """Structured logging sink."""

    async def send(
        self,
        level: str,
        message: str,
        recipients: Optional[List[str]] = None,
        **metadata: Any,
    ) -> None:
        """Log notification."""
        log = logger.error if level == "error" else logger.info
        log(
            "notification",
            level=level,
            message=message,
            recipients=recipients or [],
            **metadata,
        )


@dataclass
class Notification:
    """A message captured by CollectingNotificationSink."""
    level: str
    message: str
    recipients: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    sent_at: datetime = field(default_factory=utcnow)


class CollectingNotificationSink(NotificationSink):
    """Keeps every message in memory, newest last."""

    def __init__(self):
        self.notifications: List[Notification] = []

    async def send(
        self,
        level: str,
        message: str,
        recipients: Optional[List[str]] = None,
        **metadata: Any,
    ) -> None:
        self.notifications.append(
            Notification(
                level=level,
                message=message,
                recipients=list(recipients or []),
                metadata=metadata,
            )
        )

    @property
    def messages(self) -> List[str]:
        return [n.message for n in self.notifications]

    def clear(self) -> None:
        self.notifications.clear()
