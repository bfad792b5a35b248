# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/notification_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Description:
    User notification service for the admin dashboards. Views report the outcome
    of loads and mutations here ("Team created successfully", "Failed to load
    users"); the rendering layer subscribes handlers that turn them into toasts.

    Key Features:
    - Fire-and-forget delivery: ``notify`` never raises
    - Sync handlers run inline, async handlers are scheduled on the running loop
    - Handler failures are logged and never propagated
    - Bounded history of recent notifications

Usage:
    ```python
    from volleydash.services.notification_service import init_notification_service

    notification_service = init_notification_service()
    notification_service.subscribe(lambda n: print(n.level.value, n.message))
    notification_service.success("Team created successfully")
    ```
"""

# Future
from __future__ import annotations

# Standard
import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, List, Optional, Set, Union

# First-Party
from volleydash.db import utc_now
from volleydash.services.logging_service import LoggingService

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class NotificationLevel(Enum):
    """Severity of a user notification.

    Attributes:
        SUCCESS: A mutation succeeded.
        ERROR: A load or mutation failed, or input was rejected.
        INFO: Neutral information.
        WARNING: Partial result.
    """

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass(frozen=True)
class Notification:
    """A message for the user.

    Attributes:
        level: Notification severity.
        message: Text shown to the user.
        created_at: When the notification was emitted.

    Examples:
        >>> n = Notification(NotificationLevel.ERROR, "Team name is required")
        >>> n.level.value, n.message
        ('error', 'Team name is required')
    """

    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=utc_now)


NotificationHandler = Callable[[Notification], Union[None, Awaitable[None]]]


class NotificationService:
    """Deliver notifications to subscribed handlers.

    Attributes:
        max_history: Number of notifications kept in ``history``.

    Example:
        >>> service = NotificationService(max_history=2)
        >>> for text in ("a", "b", "c"):
        ...     service.info(text)
        >>> [n.message for n in service.history]
        ['b', 'c']
        >>> def broken(_):
        ...     raise RuntimeError("boom")
        >>> service.subscribe(broken)
        >>> service.error("still delivered")
        >>> service.history[-1].message
        'still delivered'
    """

    def __init__(self, max_history: int = 100) -> None:
        """Initialize the NotificationService.

        Args:
            max_history: Number of notifications to remember.
        """
        self.max_history = max_history
        self._handlers: List[NotificationHandler] = []
        self._history: Deque[Notification] = deque(maxlen=max_history)
        self._pending: Set[asyncio.Task[Any]] = set()

    @property
    def history(self) -> List[Notification]:
        """Return the most recent notifications, oldest first.

        Returns:
            List[Notification]: Recent notifications.
        """
        return list(self._history)

    def clear(self) -> None:
        """Forget the notification history."""
        self._history.clear()

    def subscribe(self, handler: NotificationHandler) -> None:
        """Register a handler called for every notification.

        Args:
            handler: Sync callable or coroutine function taking a Notification.
        """
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: NotificationHandler) -> None:
        """Remove a handler; unknown handlers are ignored.

        Args:
            handler: Previously subscribed handler.
        """
        if handler in self._handlers:
            self._handlers.remove(handler)

    def notify(self, level: Union[NotificationLevel, str], message: str) -> None:
        """Emit a notification to every handler.

        Args:
            level: Notification level or its string value.
            message: Text shown to the user.

        Examples:
            >>> service = NotificationService()
            >>> service.notify("success", "Saved")
            >>> service.history[0].level
            <NotificationLevel.SUCCESS: 'success'>
        """
        notification = Notification(NotificationLevel(level), message)
        self._history.append(notification)
        logger.debug(f"Notification [{notification.level.value}]: {message}")

        for handler in list(self._handlers):
            try:
                result = handler(notification)
                if asyncio.iscoroutine(result):
                    self._fire_and_forget(result)
            except Exception as e:
                logger.warning(f"Notification handler {getattr(handler, '__name__', handler)!r} failed: {e}")

    def success(self, message: str) -> None:
        """Emit a success notification.

        Args:
            message: Text shown to the user.
        """
        self.notify(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> None:
        """Emit an error notification.

        Args:
            message: Text shown to the user.
        """
        self.notify(NotificationLevel.ERROR, message)

    def info(self, message: str) -> None:
        """Emit an informational notification.

        Args:
            message: Text shown to the user.
        """
        self.notify(NotificationLevel.INFO, message)

    def warning(self, message: str) -> None:
        """Emit a warning notification.

        Args:
            message: Text shown to the user.
        """
        self.notify(NotificationLevel.WARNING, message)

    def _fire_and_forget(self, coro: Awaitable[None]) -> None:
        """Schedule an async handler and log its failure when it finishes.

        The coroutine is closed when no event loop is running.

        Args:
            coro: Coroutine returned by an async handler.
        """
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            close = getattr(coro, "close", None)
            if callable(close):
                close()
            logger.warning("Async notification handler skipped: no running event loop")
            return

        self._pending.add(task)
        task.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, task: asyncio.Task[Any]) -> None:
        """Log the failure of a scheduled handler.

        Args:
            task: Finished handler task.
        """
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Async notification handler failed: {error}")

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish.

        Example:
            >>> async def test():
            ...     seen = []
            ...     async def handler(n):
            ...         seen.append(n.message)
            ...     service = NotificationService()
            ...     service.subscribe(handler)
            ...     service.success("Member removed successfully")
            ...     await service.drain()
            ...     return seen
            >>> asyncio.run(test())
            ['Member removed successfully']
        """
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Module-level singleton instance (initialized lazily)
_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get the global NotificationService instance, creating it on first use.

    Returns:
        The global NotificationService instance.

    Example:
        >>> get_notification_service() is get_notification_service()
        True
    """
    global _notification_service  # pylint: disable=global-statement
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service


def init_notification_service(max_history: int = 100) -> NotificationService:
    """Replace the global NotificationService.

    Args:
        max_history: Number of notifications to remember.

    Returns:
        The initialized NotificationService instance.

    Example:
        >>> service = init_notification_service(max_history=10)
        >>> service.max_history
        10
    """
    global _notification_service  # pylint: disable=global-statement
    _notification_service = NotificationService(max_history=max_history)
    logger.info("Global NotificationService created")
    return _notification_service


async def close_notification_service() -> None:
    """Drain pending handlers and drop the global NotificationService.

    Example:
        >>> import asyncio
        >>> async def test():
        ...     first = init_notification_service()
        ...     await close_notification_service()
        ...     return get_notification_service() is not first
        >>> asyncio.run(test())
        True
    """
    global _notification_service  # pylint: disable=global-statement
    if _notification_service is not None:
        await _notification_service.drain()
        _notification_service = None
        logger.info("Global NotificationService closed")
