# -*- coding: utf-8 -*-
"""Database query counter for detecting N+1 patterns.

Copyright 2025
SPDX-License-Identifier: Apache-2.0

Counts the SQL statements an engine executes inside a block, so tests can pin
the number of round trips a service makes regardless of how many rows it
handles.

Examples:
    >>> from tests.helpers.query_counter import count_queries
    >>> from volleydash.db import engine
    >>> with count_queries(engine) as counter:  # doctest: +SKIP
    ...     # perform database operations
    ...     pass  # doctest: +SKIP
    >>> print(f"Executed {counter.count} queries")  # doctest: +SKIP
"""

# Standard
from contextlib import contextmanager
import re
import threading
from typing import Any, Dict, Generator, List, Optional

# Third-Party
from sqlalchemy import event
from sqlalchemy.engine import Engine


class QueryCounter:
    """Thread-safe SQL statement counter fed by SQLAlchemy engine events.

    Attributes:
        count: Number of statements executed
        statements: Executed SQL text, in order
    """

    def __init__(self) -> None:
        """Initialize the query counter."""
        self.count: int = 0
        self.statements: List[str] = []
        self._lock = threading.Lock()

    def record(self, statement: str) -> None:
        """Record one executed statement.

        Args:
            statement: SQL text
        """
        with self._lock:
            self.count += 1
            self.statements.append(statement)

    def reset(self) -> None:
        """Reset the counter and clear statement history."""
        with self._lock:
            self.count = 0
            self.statements = []

    def get_query_types(self) -> Dict[str, int]:
        """Get count of each statement type (SELECT, INSERT, UPDATE, DELETE).

        Returns:
            Dictionary mapping statement type to count
        """
        types: Dict[str, int] = {}
        for stmt in self.statements:
            words = stmt.strip().upper().split()
            query_type = words[0] if words else "UNKNOWN"
            types[query_type] = types.get(query_type, 0) + 1
        return types

    def describe(self) -> str:
        """Render the executed statements for assertion messages.

        Returns:
            Numbered, truncated statement list
        """
        return "\n".join(f"  {i:3}. {stmt[:100]}" for i, stmt in enumerate(self.statements, start=1))


@contextmanager
def count_queries(engine: Engine) -> Generator[QueryCounter, None, None]:
    """Context manager to count SQL statements executed within a block.

    Args:
        engine: SQLAlchemy engine to monitor

    Yields:
        QueryCounter instance with the statements executed so far
    """
    counter = QueryCounter()

    def after_execute(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool) -> None:
        counter.record(statement)

    event.listen(engine, "after_cursor_execute", after_execute)
    try:
        yield counter
    finally:
        event.remove(engine, "after_cursor_execute", after_execute)


@contextmanager
def assert_max_queries(engine: Engine, max_count: int, message: Optional[str] = None) -> Generator[QueryCounter, None, None]:
    """Context manager that asserts the statement count stays within a limit.

    Args:
        engine: SQLAlchemy engine to monitor
        max_count: Maximum allowed statement count
        message: Custom error message

    Yields:
        QueryCounter instance

    Raises:
        AssertionError: If the statement count exceeds max_count
    """
    with count_queries(engine) as counter:
        yield counter

    if counter.count > max_count:
        default_msg = f"Expected at most {max_count} queries, got {counter.count}"
        raise AssertionError(f"{message or default_msg}\n\nQueries executed:\n{counter.describe()}")


def detect_n_plus_one(counter: QueryCounter, threshold: int = 5) -> List[str]:
    """Look for the same statement shape repeated at least ``threshold`` times.

    Args:
        counter: QueryCounter with recorded statements
        threshold: Minimum repetitions to flag as potential N+1

    Returns:
        List of warning messages for potential N+1 patterns
    """
    patterns: Dict[str, int] = {}
    for stmt in counter.statements:
        normalized = re.sub(r"'[^']*'", "'?'", stmt)
        normalized = re.sub(r"\b\d+\b", "?", normalized)
        normalized = re.sub(r"\s+", " ", normalized).strip()
        patterns[normalized] = patterns.get(normalized, 0) + 1

    return [f"Potential N+1: Query pattern repeated {count} times:\n  {pattern[:100]}..." for pattern, count in patterns.items() if count >= threshold]
