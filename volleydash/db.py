# -*- coding: utf-8 -*-
"""Location: ./volleydash/db.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Database models and session management.
This module declares the SQLAlchemy ORM models for the collections the admin
services read and write (user profiles, teams, memberships, team activity
audit, invitations, players, game days, custom game types and serves) and
builds the engine and session factory from the configured database URL.

The tables are owned by the platform backend; ``init_db`` exists for local
development and tests.

Examples:
    >>> from volleydash.db import Team, TeamMember
    >>> Team.__tablename__, TeamMember.__tablename__
    ('teams', 'team_members')
    >>> sorted(Base.metadata.tables)
    ['custom_game_types', 'game_days', 'players', 'serves', 'team_activity_audit', 'team_invitations', 'team_members', 'teams', 'user_profiles']
"""

# Standard
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional
import uuid

# Third-Party
import orjson
from sqlalchemy import Boolean, create_engine, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.engine import Dialect, Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, Session, sessionmaker
from sqlalchemy.types import TypeDecorator

# First-Party
from volleydash.config import settings
from volleydash.services.logging_service import LoggingService

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime.

    Returns:
        datetime: Current UTC time

    Examples:
        >>> utc_now().tzinfo is timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def _new_id() -> str:
    """Generate a primary key value.

    Returns:
        str: 32 character hex UUID

    Examples:
        >>> len(_new_id())
        32
    """
    return uuid.uuid4().hex


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime column that always round-trips as UTC.

    SQLite has no timezone support, so values are stored as naive UTC there and
    re-labelled as UTC when read back.

    Examples:
        >>> from sqlalchemy.dialects import sqlite
        >>> col = UTCDateTime()
        >>> naive = datetime(2025, 3, 1, 12, 0)
        >>> col.process_result_value(naive, sqlite.dialect()).tzinfo is timezone.utc
        True
        >>> col.process_bind_param(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc), sqlite.dialect()).tzinfo is None
        True
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        """Normalize outgoing values to UTC.

        Args:
            value: Datetime being written or compared
            dialect: Active SQL dialect

        Returns:
            Optional[datetime]: UTC value, naive for SQLite
        """
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Dialect) -> Optional[datetime]:
        """Attach UTC to values read back without a timezone.

        Args:
            value: Datetime loaded from the database
            dialect: Active SQL dialect

        Returns:
            Optional[datetime]: Timezone-aware UTC value
        """
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all admin models."""


class UserProfile(Base):
    """Platform user profile."""

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_super_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False)

    memberships: Mapped[List["TeamMember"]] = relationship("TeamMember", back_populates="profile")

    @property
    def display_name(self) -> str:
        """Return the full name, falling back to the e-mail address.

        Returns:
            str: Human readable name

        Examples:
            >>> UserProfile(email="libero@club.test").display_name
            'libero@club.test'
            >>> UserProfile(email="a@club.test", full_name="Ana").display_name
            'Ana'
        """
        return self.full_name or self.email


class Team(Base):
    """A volleyball team."""

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(767), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("user_profiles.user_id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    members: Mapped[List["TeamMember"]] = relationship("TeamMember", back_populates="team")
    invitations: Mapped[List["TeamInvitation"]] = relationship("TeamInvitation", back_populates="team")


class TeamMember(Base):
    """Membership of a user in a team."""

    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user_profiles.user_id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), default="member", nullable=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
    invited_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    invited_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    team: Mapped["Team"] = relationship("Team", back_populates="members")
    profile: Mapped["UserProfile"] = relationship("UserProfile", back_populates="memberships")


class TeamActivityAudit(Base):
    """Append-only audit entry for a team."""

    __tablename__ = "team_activity_audit"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("teams.id"), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    performed_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("user_profiles.user_id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False, index=True)

    performer: Mapped[Optional["UserProfile"]] = relationship("UserProfile")


class TeamInvitation(Base):
    """Invitation code for joining a team."""

    __tablename__ = "team_invitations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    invite_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    invitation_type: Mapped[str] = mapped_column(String(20), default="member", nullable=False)
    invited_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    admin_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    accepted_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    team: Mapped["Team"] = relationship("Team", back_populates="invitations")


class Serve(Base):
    """A recorded serve."""

    __tablename__ = "serves"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    player_id: Mapped[str] = mapped_column(String(36), nullable=False)
    game_id: Mapped[str] = mapped_column(String(36), nullable=False)
    quality: Mapped[str] = mapped_column(String(10), default="neutral", nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    recorded_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


class Player(Base):
    """A player on a team roster with running serve totals."""

    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tags: Mapped[Optional[List[str]]] = mapped_column(JSON, nullable=True)
    total_aces: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_fails: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False)


class GameDay(Base):
    """A training session or match day."""

    __tablename__ = "game_days"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    game_type: Mapped[str] = mapped_column(String(10), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False)


class CustomGameType(Base):
    """A game type defined by a team in addition to the built-in ones."""

    __tablename__ = "custom_game_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    team_id: Mapped[str] = mapped_column(String(36), ForeignKey("teams.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    abbreviation: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False)


def _json_serializer(value: Any) -> str:
    """Serialize JSON columns with orjson.

    Args:
        value: Python value to store

    Returns:
        str: JSON text

    Examples:
        >>> _json_serializer({"old_role": "member", "new_role": "admin"})
        '{"old_role":"member","new_role":"admin"}'
    """
    return orjson.dumps(value, default=str).decode()


def build_engine(database_url: str) -> Engine:
    """Create an engine for the given URL with dialect-appropriate options.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Engine: Configured engine (connections are opened lazily)

    Examples:
        >>> build_engine("sqlite:///:memory:").dialect.name
        'sqlite'
    """
    kwargs: Dict[str, Any] = {
        "echo": settings.db_echo,
        "json_serializer": _json_serializer,
        "json_deserializer": orjson.loads,
    }
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
        )
    return create_engine(database_url, **kwargs)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, Any, None]:
    """Yield a database session and close it afterwards.

    The session is committed when the consumer finishes normally and rolled
    back when it raises.

    Yields:
        Session: SQLAlchemy session

    Raises:
        Exception: Re-raises whatever the consumer raised

    Examples:
        >>> gen = get_db()
        >>> db = next(gen)
        >>> isinstance(db, Session)
        True
        >>> gen.close()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables on the given engine (defaults to the module engine).

    Args:
        bind: Engine to create the schema on
    """
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database schema ready on {target.url.render_as_string(hide_password=True)}")
