# -*- coding: utf-8 -*-
"""Root conftest.py for pytest configuration.

Lives at the repository root so the root is importable (``tests.helpers``) and
so its fixtures also apply to the doctests collected from ``volleydash``.
"""

# Standard
import os

# Hermetic database for doctests and tests; must be set before volleydash is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

# Third-Party
import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def reset_global_notification_service():
    """Give every test (and doctest) a fresh global notification service."""
    # First-Party
    import volleydash.services.notification_service as notification_mod  # pylint: disable=import-outside-toplevel

    notification_mod._notification_service = None  # pylint: disable=protected-access
    yield
    notification_mod._notification_service = None  # pylint: disable=protected-access
