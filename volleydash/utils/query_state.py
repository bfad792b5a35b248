# -*- coding: utf-8 -*-
"""Location: ./volleydash/utils/query_state.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Query state tracking for dashboard views.

Every query a view runs is owned by a ``QueryTracker``. The tracker moves
through ``idle -> loading -> success | error`` and stamps each run with a
generation number; only the latest run may replace the state, so a slow
response for an old team or filter never overwrites a newer one. A failed run
keeps the data of the last successful run.

Examples:
    >>> import asyncio
    >>> async def load_teams():
    ...     return ["Thunder", "Sharks"]
    >>> tracker = QueryTracker("teams", load_teams)
    >>> tracker.state.status
    <QueryStatus.IDLE: 'idle'>
    >>> state = asyncio.run(tracker.run())
    >>> state.status, state.data
    (<QueryStatus.SUCCESS: 'success'>, ['Thunder', 'Sharks'])
"""

# Standard
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

# First-Party
from volleydash.db import utc_now
from volleydash.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

T = TypeVar("T")

ErrorCallback = Callable[[BaseException], None]


class QueryStatus(str, Enum):
    """Lifecycle of a query."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryState(Generic[T]):
    """Snapshot of a query exposed to the rendering layer.

    Attributes:
        status: Current lifecycle status.
        data: Result of the last successful run, kept through later errors.
        error: Cause of the last failure, cleared by the next run.
        generation: Run that produced this snapshot.
        updated_at: When the snapshot was produced.

    Examples:
        >>> QueryState().is_idle
        True
        >>> QueryState(status=QueryStatus.ERROR, data=[1]).data
        [1]
    """

    status: QueryStatus = QueryStatus.IDLE
    data: Optional[T] = None
    error: Optional[BaseException] = None
    generation: int = 0
    updated_at: Optional[datetime] = None

    @property
    def is_idle(self) -> bool:
        """Return True before any run or after a reset.

        Returns:
            bool: Whether the query is idle
        """
        return self.status is QueryStatus.IDLE

    @property
    def is_loading(self) -> bool:
        """Return True while a run is in flight.

        Returns:
            bool: Whether the query is loading
        """
        return self.status is QueryStatus.LOADING

    @property
    def is_success(self) -> bool:
        """Return True when the latest run succeeded.

        Returns:
            bool: Whether the query succeeded
        """
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        """Return True when the latest run failed.

        Returns:
            bool: Whether the query failed
        """
        return self.status is QueryStatus.ERROR


class QueryTracker(Generic[T]):
    """Run a loader and keep the state of its latest run.

    Attributes:
        name: Query name used in logs.

    Examples:
        >>> import asyncio
        >>> async def broken():
        ...     raise RuntimeError("database unavailable")
        >>> tracker = QueryTracker("users", broken)
        >>> state = asyncio.run(tracker.run())
        >>> state.status.value, str(state.error)
        ('error', 'database unavailable')
        >>> tracker.reset().is_idle
        True
    """

    def __init__(self, name: str, loader: Callable[..., Awaitable[T]], on_error: Optional[ErrorCallback] = None) -> None:
        """Initialize the tracker.

        Args:
            name: Query name used in logs
            loader: Coroutine function producing the data
            on_error: Called with the cause when the latest run fails
        """
        self.name = name
        self._loader = loader
        self._on_error = on_error
        self._generation = 0
        self._state: QueryState[T] = QueryState()

    @property
    def state(self) -> QueryState[T]:
        """Return the current snapshot.

        Returns:
            QueryState: Current state
        """
        return self._state

    @property
    def data(self) -> Optional[T]:
        """Return the data of the last successful run.

        Returns:
            Optional[T]: Loaded data
        """
        return self._state.data

    @property
    def generation(self) -> int:
        """Return the generation of the latest issued run.

        Returns:
            int: Latest generation
        """
        return self._generation

    def reset(self) -> QueryState[T]:
        """Return to idle and invalidate any run in flight.

        Returns:
            QueryState: The idle state
        """
        self._generation += 1
        self._state = QueryState(generation=self._generation, updated_at=utc_now())
        return self._state

    def _is_current(self, generation: int) -> bool:
        """Check whether a run is still the latest one.

        Args:
            generation: Generation of the finished run

        Returns:
            bool: True when no newer run or reset was issued
        """
        if generation != self._generation:
            logger.debug(f"Discarding stale response for query {self.name} (generation {generation}, latest {self._generation})")
            return False
        return True

    async def run(self, *args: Any, **kwargs: Any) -> QueryState[T]:
        """Run the loader and publish its outcome if it is still the latest run.

        Args:
            *args: Positional arguments for the loader
            **kwargs: Keyword arguments for the loader

        Returns:
            QueryState: State after this run; unchanged by stale runs
        """
        self._generation += 1
        generation = self._generation
        self._state = replace(self._state, status=QueryStatus.LOADING, error=None, generation=generation, updated_at=utc_now())

        try:
            data = await self._loader(*args, **kwargs)
        except Exception as e:
            if not self._is_current(generation):
                return self._state
            logger.error(f"Query {self.name} failed: {e}")
            self._state = replace(self._state, status=QueryStatus.ERROR, error=e, updated_at=utc_now())
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception as callback_error:
                    logger.warning(f"Error callback for query {self.name} failed: {callback_error}")
            return self._state

        if not self._is_current(generation):
            return self._state
        self._state = QueryState(status=QueryStatus.SUCCESS, data=data, generation=generation, updated_at=utc_now())
        return self._state
