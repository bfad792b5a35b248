# -*- coding: utf-8 -*-
"""Location: ./tests/conftest.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
"""

# Standard
import os
import sys
import warnings

# Third-Party
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

TEST_SQLITE_MEMORY_URL = "sqlite:///:memory:"
EXTERNAL_TEST_DB_OPT_IN_ENV = "VOLLEYDASH_TEST_ALLOW_EXTERNAL_DB"
EXTERNAL_TEST_DB_OPT_IN_FLAGS = {"--allow-external-db"}
_TRUTHY_ENV_VALUES = {"1", "true", "yes", "on"}


def _is_external_db_opted_in() -> bool:
    """Return True when external test DB usage is explicitly enabled."""
    env_opt_in = os.getenv(EXTERNAL_TEST_DB_OPT_IN_ENV, "").strip().lower() in _TRUTHY_ENV_VALUES
    cli_opt_in = any(flag in sys.argv for flag in EXTERNAL_TEST_DB_OPT_IN_FLAGS)
    return env_opt_in or cli_opt_in


def _force_safe_test_db_defaults() -> None:
    """Force hermetic in-memory SQLite defaults unless external DB is explicitly enabled."""
    if _is_external_db_opted_in():
        return

    test_database_url_env = os.getenv("TEST_DATABASE_URL")
    if test_database_url_env and test_database_url_env != TEST_SQLITE_MEMORY_URL:
        warnings.warn(
            f"TEST_DATABASE_URL ignored. Set {EXTERNAL_TEST_DB_OPT_IN_ENV}=1 or pass --allow-external-db to allow it. Using {TEST_SQLITE_MEMORY_URL}.",
            UserWarning,
            stacklevel=2,
        )

    os.environ["DATABASE_URL"] = TEST_SQLITE_MEMORY_URL
    os.environ["TEST_DATABASE_URL"] = TEST_SQLITE_MEMORY_URL


_force_safe_test_db_defaults()

# First-Party
import volleydash.db as db_mod  # noqa: E402  # must load after test DB env hardening
from volleydash.services.notification_service import NotificationService  # noqa: E402


def pytest_addoption(parser):
    """Add explicit opt-in flag for running tests against an external database."""
    parser.addoption(
        "--allow-external-db",
        action="store_true",
        default=False,
        help=f"Allow an external test DB (same as setting {EXTERNAL_TEST_DB_OPT_IN_ENV}=1).",
    )


def resolve_test_db_url():
    """Return DB URL for tests.

    Default behavior is hermetic in-memory SQLite. ``TEST_DATABASE_URL`` is only
    honoured when explicitly enabled.
    """
    if not _is_external_db_opted_in():
        return TEST_SQLITE_MEMORY_URL
    return os.getenv("TEST_DATABASE_URL") or TEST_SQLITE_MEMORY_URL


@pytest.fixture(scope="session")
def test_db_url():
    return resolve_test_db_url()


@pytest.fixture
def test_engine(test_db_url):
    """Create a SQLAlchemy engine with a fresh schema for each test."""
    if test_db_url.startswith("sqlite"):
        engine = create_engine(
            test_db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            json_serializer=db_mod._json_serializer,  # pylint: disable=protected-access
        )
    else:
        engine = create_engine(test_db_url, json_serializer=db_mod._json_serializer)  # pylint: disable=protected-access

    db_mod.Base.metadata.create_all(bind=engine)
    yield engine
    try:
        db_mod.Base.metadata.drop_all(bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def test_db(test_engine):
    """Create a fresh database session for a test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def notifications():
    """Notification service isolated to one test."""
    return NotificationService()


def pytest_sessionfinish(session, exitstatus):
    """Clean up resources at the end of the test session."""
    # Dispose the module-level engine to close all SQLite connections
    try:
        if hasattr(db_mod, "engine") and db_mod.engine is not None:
            db_mod.engine.dispose()
    except Exception:
        pass  # Ignore errors during cleanup


# ---------------------------------------------------------------------------
# Query counting fixtures for N+1 detection
# ---------------------------------------------------------------------------


@pytest.fixture
def query_counter(test_engine):
    """Fixture to count database queries in tests.

    Usage:
        def test_something(query_counter, test_db):
            with query_counter() as counter:
                # do database operations
            assert counter.count <= 5, f"Too many queries: {counter.count}"

    Args:
        test_engine: SQLAlchemy engine fixture

    Returns:
        Callable that returns a context manager for counting queries
    """
    # Local
    from tests.helpers.query_counter import count_queries

    def _counter():
        return count_queries(test_engine)

    return _counter


@pytest.fixture
def assert_max_queries(test_engine):
    """Fixture to assert maximum query count in tests.

    Usage:
        async def test_list_users(assert_max_queries, test_db):
            with assert_max_queries(2):
                await UserManagementService(test_db).list_users_with_team_counts()

    Args:
        test_engine: SQLAlchemy engine fixture

    Returns:
        Context manager that raises AssertionError if query limit exceeded
    """
    # Local
    from tests.helpers.query_counter import assert_max_queries as _assert_max

    def _fixture(max_count: int, message: str = None):
        return _assert_max(test_engine, max_count, message)

    return _fixture
