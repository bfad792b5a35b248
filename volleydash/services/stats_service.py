# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/stats_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Team and Platform Statistics Service.
This module derives the summary numbers shown on the team overview and on the
platform analytics screen. Team numbers are reduced client-side from the rows
read for the team; platform numbers come from counted reads without row bodies.
Nothing is cached: every call recomputes from scratch.

It includes:
- Membership role breakdown (admins, members, any other role)
- Activity within the trailing window (inclusive boundary)
- Serve totals per team
- Platform totals (users, teams, super admins, serves, recent signups)

Examples:
    >>> from datetime import datetime, timezone
    >>> now = datetime(2025, 6, 8, tzinfo=timezone.utc)
    >>> stats = aggregate_team_stats(["admin", "member", "member"], [datetime(2025, 6, 7, tzinfo=timezone.utc)], now=now)
    >>> stats.total_members, stats.admin_count, stats.member_count, stats.recent_activity_count
    (3, 1, 2, 1)
"""

# Standard
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

# Third-Party
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

# First-Party
from volleydash.config import settings
from volleydash.db import Serve, Team, TeamActivityAudit, TeamMember, UserProfile, utc_now
from volleydash.schemas import MemberRole, PlatformStats, TeamStats
from volleydash.services.logging_service import LoggingService

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC.

    Args:
        value: Datetime to normalize

    Returns:
        datetime: Timezone-aware datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def window_start(now: Optional[datetime] = None, window_days: Optional[int] = None) -> datetime:
    """Return the first instant inside the trailing window.

    Args:
        now: Reference time, defaults to the current UTC time
        window_days: Window length, defaults to ``settings.recent_window_days``

    Returns:
        datetime: ``now - window_days``

    Examples:
        >>> window_start(datetime(2025, 6, 8, tzinfo=timezone.utc), 7).isoformat()
        '2025-06-01T00:00:00+00:00'
    """
    now = _as_utc(now or utc_now())
    if window_days is None:
        window_days = settings.recent_window_days
    return now - timedelta(days=window_days)


def count_recent(timestamps: Iterable[Optional[datetime]], now: Optional[datetime] = None, window_days: Optional[int] = None) -> int:
    """Count timestamps inside the trailing window.

    The boundary instant is inside the window.

    Args:
        timestamps: Timestamps to test; None values are ignored
        now: Reference time, defaults to the current UTC time
        window_days: Window length, defaults to ``settings.recent_window_days``

    Returns:
        int: Number of timestamps ``>= now - window_days``

    Examples:
        >>> now = datetime(2025, 6, 8, tzinfo=timezone.utc)
        >>> edge = datetime(2025, 6, 1, tzinfo=timezone.utc)
        >>> count_recent([edge, edge - timedelta(microseconds=1)], now=now, window_days=7)
        1
        >>> count_recent([], now=now)
        0
    """
    cutoff = window_start(now, window_days)
    return sum(1 for ts in timestamps if ts is not None and _as_utc(ts) >= cutoff)


def aggregate_team_stats(roles: Iterable[str], activity_timestamps: Iterable[Optional[datetime]], now: Optional[datetime] = None, window_days: Optional[int] = None) -> TeamStats:
    """Reduce membership roles and audit timestamps into team statistics.

    Roles other than admin and member are counted in ``other_role_count`` so
    the three role counts always add up to ``total_members``.

    Args:
        roles: Role of every membership of the team
        activity_timestamps: Creation times of the team's audit entries
        now: Reference time for the recent window
        window_days: Window length in days

    Returns:
        TeamStats: Membership and activity counts

    Examples:
        >>> s = aggregate_team_stats(["admin", "coach", "member"], [])
        >>> s.admin_count + s.member_count + s.other_role_count == s.total_members
        True
        >>> s.other_role_count
        1
    """
    roles = list(roles)
    admin_count = sum(1 for role in roles if role == MemberRole.ADMIN.value)
    member_count = sum(1 for role in roles if role == MemberRole.MEMBER.value)
    return TeamStats(
        total_members=len(roles),
        admin_count=admin_count,
        member_count=member_count,
        other_role_count=len(roles) - admin_count - member_count,
        recent_activity_count=count_recent(activity_timestamps, now=now, window_days=window_days),
    )


# pylint: disable=not-callable
# SQLAlchemy's func.count() is callable at runtime but pylint cannot detect this
class TeamStatsService:
    """Compute the statistics of a single team.

    Examples:
        >>> from unittest.mock import MagicMock
        >>> service = TeamStatsService(MagicMock())
        >>> isinstance(service, TeamStatsService)
        True
    """

    def __init__(self, db: Session):
        """Initialize the team statistics service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    async def get_team_stats(self, team_id: str, now: Optional[datetime] = None) -> TeamStats:
        """Read the team's rows and reduce them into statistics.

        Args:
            team_id: Team to summarize
            now: Reference time for the recent window

        Returns:
            TeamStats: Membership, activity and serve counts

        Raises:
            Exception: If any read fails
        """
        now = now or utc_now()
        cutoff = window_start(now)
        try:
            roles = self.db.execute(select(TeamMember.role).where(TeamMember.team_id == team_id)).scalars().all()
            timestamps = self.db.execute(select(TeamActivityAudit.created_at).where(TeamActivityAudit.team_id == team_id, TeamActivityAudit.created_at >= cutoff)).scalars().all()
            serves = self.db.execute(
                select(
                    func.count(Serve.id).label("total"),
                    func.sum(case((Serve.type == "ace", 1), else_=0)).label("aces"),
                    func.sum(case((Serve.type == "fail", 1), else_=0)).label("fails"),
                ).where(Serve.team_id == team_id)
            ).one()
            last_activity_at = self.db.execute(select(Team.last_activity_at).where(Team.id == team_id)).scalar_one_or_none()
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error collecting statistics for team {team_id}: {str(e)}")
            raise

        stats = aggregate_team_stats(roles, timestamps, now=now)
        return stats.model_copy(
            update={
                "total_serves": serves.total or 0,
                "total_aces": serves.aces or 0,
                "total_fails": serves.fails or 0,
                "last_activity_at": last_activity_at,
            }
        )


class PlatformStatsService:
    """Compute platform-wide totals for super admins.

    Examples:
        >>> from unittest.mock import MagicMock
        >>> service = PlatformStatsService(MagicMock())
        >>> isinstance(service, PlatformStatsService)
        True
    """

    def __init__(self, db: Session):
        """Initialize the platform statistics service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    async def get_platform_stats(self, now: Optional[datetime] = None) -> PlatformStats:
        """Collect platform totals with counted reads.

        Args:
            now: Reference time for the recent signup window

        Returns:
            PlatformStats: User, team, super admin, serve and signup counts

        Raises:
            Exception: If any read fails
        """
        logger.info("Collecting platform statistics")
        cutoff = window_start(now)
        try:
            users = self.db.execute(
                select(
                    func.count(UserProfile.user_id).label("total"),
                    func.sum(case((UserProfile.is_super_admin.is_(True), 1), else_=0)).label("super_admins"),
                    func.sum(case((UserProfile.created_at >= cutoff, 1), else_=0)).label("recent"),
                )
            ).one()
            total_teams = self.db.execute(select(func.count(Team.id))).scalar() or 0
            total_serves = self.db.execute(select(func.count(Serve.id))).scalar() or 0
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error collecting platform statistics: {str(e)}")
            raise

        return PlatformStats(
            total_users=users.total or 0,
            total_teams=total_teams,
            total_super_admins=users.super_admins or 0,
            total_serves=total_serves,
            recent_signups=users.recent or 0,
        )
