# -*- coding: utf-8 -*-
"""Location: ./volleydash/utils/search.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Search helpers for case-insensitive substring filters.

Examples:
    >>> contains_pattern("  ana_b ")
    '%ana\\\\_b%'
    >>> contains_pattern("   ") is None
    True
"""

# Standard
from typing import Optional

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally.

    Args:
        value: Raw value to escape for LIKE matching.

    Returns:
        Escaped string safe for LIKE patterns.

    Examples:
        >>> escape_like("50%_off")
        '50\\\\%\\\\_off'
        >>> escape_like("plain")
        'plain'
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(search: Optional[str]) -> Optional[str]:
    """Build a substring pattern from a user-entered search term.

    Args:
        search: Search term, trimmed before use

    Returns:
        Optional[str]: ``%term%`` with wildcards escaped, or None for a blank term
    """
    if not search or not search.strip():
        return None
    return f"%{escape_like(search.strip())}%"
