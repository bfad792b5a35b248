# -*- coding: utf-8 -*-
"""Location: ./volleydash/config.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Volleyball Team Admin Configuration.
This module defines configuration settings for the admin services using
Pydantic settings management. Values are loaded from environment variables
(case-insensitive) and an optional ``.env`` file.

Examples:
    >>> from volleydash.config import Settings
    >>> s = Settings(database_url="sqlite:///:memory:")
    >>> s.activity_feed_limit
    50
    >>> s.recent_window_days
    7
    >>> Settings(log_level="debug").log_level
    'DEBUG'
"""

# Standard
from functools import lru_cache
from pathlib import Path
import re
from typing import Literal, Optional

# Third-Party
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Admin service settings.

    Examples:
        >>> settings = Settings(invitation_max_uses=3)
        >>> settings.invitation_max_uses
        3
        >>> settings.database_dialect
        'sqlite'
    """

    app_name: str = "Volleyball Team Admin"

    # Database
    database_url: str = "sqlite:///./volleydash.db"
    db_pool_size: int = Field(default=10, ge=1)
    db_max_overflow: int = Field(default=20, ge=0)
    db_pool_timeout: int = Field(default=30, ge=1)
    db_pool_recycle: int = Field(default=3600, ge=-1)
    db_echo: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_to_file: bool = False
    log_file: str = "volleydash.log"
    log_folder: Optional[str] = None
    log_rotation_enabled: bool = False
    log_max_size_mb: int = Field(default=1, ge=1)
    log_backup_count: int = Field(default=5, ge=0)

    # Activity feed and dashboards
    activity_feed_limit: int = Field(default=50, ge=1, description="Maximum audit rows returned by the activity feed")
    overview_activity_limit: int = Field(default=5, ge=1, description="Audit rows shown on the team overview")
    recent_joins_limit: int = Field(default=10, ge=1)
    recent_window_days: int = Field(default=7, gt=0, description="Trailing window used for recent activity and signups")

    # Invitations
    invitation_expiry_days: int = Field(default=7, gt=0)
    invitation_max_uses: int = Field(default=10, ge=1)
    invite_code_length: int = Field(default=8, ge=4, le=32)

    # User listing
    membership_count_fallback_enabled: bool = Field(default=True, description="Fall back to per-user membership lookups when the batched count query fails")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize and validate the log level.

        Args:
            value: Raw log level name

        Returns:
            str: Upper-cased log level

        Raises:
            ValueError: If the level is not a standard logging level

        Examples:
            >>> Settings.validate_log_level("warning")
            'WARNING'
            >>> Settings.validate_log_level("loud")
            Traceback (most recent call last):
            ...
            ValueError: Invalid log level: loud
        """
        level = str(value).strip().upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return level

    @property
    def database_dialect(self) -> str:
        """Return the SQLAlchemy dialect name of the configured database.

        Returns:
            str: Dialect prefix such as ``sqlite`` or ``postgresql``

        Examples:
            >>> Settings(database_url="postgresql+psycopg://u:p@db/volley").database_dialect
            'postgresql'
        """
        return re.split(r"[+:]", self.database_url, maxsplit=1)[0]

    @property
    def log_path(self) -> Path:
        """Return the full path of the log file.

        Returns:
            Path: ``log_folder/log_file`` or just ``log_file``

        Examples:
            >>> Settings(log_folder="/tmp/logs", log_file="admin.log").log_path.as_posix()
            '/tmp/logs/admin.log'
        """
        if self.log_folder:
            return Path(self.log_folder) / self.log_file
        return Path(self.log_file)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: A cached instance of the Settings class.

    Examples:
        >>> get_settings() is get_settings()
        True
    """
    return Settings()


settings = get_settings()
