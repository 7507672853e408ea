"""
Notification Sinks
==================

Fire-and-forget delivery of user-facing success/error messages.
Core logic never consumes a sink's return value, and a failing sink
never fails the operation that produced the message.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Set

import httpx

from caseflow.core import (
    ApplicationException,
    ExternalServiceException,
    PermissionDeniedException,
    ValidationException,
)
from caseflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class NotificationLevel:
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    title: Optional[str] = None
    retryable: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "title": self.title,
            "message": self.message,
            "retryable": self.retryable,
            "created_at": self.created_at.isoformat(),
        }


class INotificationSink(ABC):
    """Interface for user-facing notification delivery."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Deliver without blocking the caller."""


class LoggingNotificationSink(INotificationSink):
    """Writes notifications to the application log."""

    def notify(self, notification: Notification) -> None:
        log = logger.error if notification.level == NotificationLevel.ERROR else logger.info
        log("User notification", extra=notification.to_dict())


class WebhookNotificationSink(INotificationSink):
    """
    Posts notifications to a webhook on background tasks.

    Delivery errors are logged and dropped.
    """

    def __init__(self, url: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._tasks: Set[asyncio.Task] = set()

    def notify(self, notification: Notification) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, notification dropped", extra=notification.to_dict())
            return
        task = loop.create_task(self._deliver(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, notification: Notification) -> None:
        try:
            response = await self._client.post(self._url, json=notification.to_dict())
            if response.status_code >= 400:
                logger.warning(
                    "Notification webhook returned error status",
                    extra={"status_code": response.status_code}
                )
        except httpx.HTTPError as e:
            logger.error("Notification delivery failed", extra={"error": str(e)})

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self._client.aclose()


class Notifier:
    """
    Maps outcomes onto the user-facing messages:
    transient errors are retryable, permission errors get a fixed denial,
    validation errors list the problems.
    """

    def __init__(self, sink: INotificationSink):
        self._sink = sink

    def success(self, message: str, title: Optional[str] = None) -> None:
        self._emit(Notification(level=NotificationLevel.SUCCESS, message=message, title=title))

    def warning(self, message: str, title: Optional[str] = None) -> None:
        self._emit(Notification(level=NotificationLevel.WARNING, message=message, title=title))

    def error(self, message: str, title: Optional[str] = None, retryable: bool = False) -> None:
        self._emit(Notification(
            level=NotificationLevel.ERROR, message=message, title=title, retryable=retryable
        ))

    def failure(self, exc: ApplicationException, title: Optional[str] = None) -> None:
        if isinstance(exc, PermissionDeniedException):
            self.error(PermissionDeniedException.DENIAL_MESSAGE, title=title)
        elif isinstance(exc, ValidationException):
            self.error("; ".join(exc.errors), title=title)
        elif isinstance(exc, ExternalServiceException) and exc.retryable:
            self.error(f"{exc.message}. Please try again.", title=title, retryable=True)
        else:
            self.error(exc.message, title=title)

    def _emit(self, notification: Notification) -> None:
        try:
            self._sink.notify(notification)
        except Exception as e:
            logger.error("Notification sink raised", extra={"error": str(e)})
