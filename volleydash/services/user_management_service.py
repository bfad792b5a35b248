# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/user_management_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

User Management Service.
This module lists platform users with their team membership counts and toggles
the super-admin flag.

Membership counts for every listed user come from one grouped query. When that
query fails the service falls back to one lookup per user; a user whose lookup
fails is still listed, with zero counts, while every other user keeps accurate
numbers.

Examples:
    >>> from unittest.mock import Mock
    >>> service = UserManagementService(Mock())
    >>> isinstance(service, UserManagementService)
    True
"""

# Standard
from typing import Dict, List, Optional, Sequence, Tuple

# Third-Party
from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

# First-Party
from volleydash.config import settings
from volleydash.db import TeamMember, UserProfile
from volleydash.schemas import MemberRole, UserProfileRead, UserWithTeamCounts
from volleydash.services.logging_service import LoggingService
from volleydash.utils.search import contains_pattern, LIKE_ESCAPE

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

TeamCounts = Tuple[int, int]
ZERO_COUNTS: TeamCounts = (0, 0)


class UserManagementError(Exception):
    """Base class for user management-related errors.

    Examples:
        >>> error = UserManagementError("Test error")
        >>> str(error)
        'Test error'
        >>> isinstance(error, Exception)
        True
    """


class UserNotFoundError(UserManagementError):
    """Raised when a user profile does not exist.

    Examples:
        >>> error = UserNotFoundError("User not found: u-1")
        >>> str(error)
        'User not found: u-1'
        >>> isinstance(error, UserManagementError)
        True
    """


# pylint: disable=not-callable
# SQLAlchemy's func.count() is callable at runtime but pylint cannot detect this
class UserManagementService:
    """Service for super-admin user operations.

    Attributes:
        db (Session): SQLAlchemy database session
    """

    def __init__(self, db: Session):
        """Initialize service with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    async def list_users_with_team_counts(self, search: Optional[str] = None) -> List[UserWithTeamCounts]:
        """List users, newest first, with team and admin-team counts.

        Args:
            search: Case-insensitive filter on e-mail or full name

        Returns:
            List[UserWithTeamCounts]: Users with derived counts

        Raises:
            Exception: If the profile read fails
        """
        stmt = select(UserProfile)
        pattern = contains_pattern(search)
        if pattern:
            stmt = stmt.where(or_(UserProfile.email.ilike(pattern, escape=LIKE_ESCAPE), UserProfile.full_name.ilike(pattern, escape=LIKE_ESCAPE)))
        stmt = stmt.order_by(UserProfile.created_at.desc())

        try:
            profiles = [UserProfileRead.model_validate(profile) for profile in self.db.execute(stmt).scalars().all()]
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to list user profiles: {e}")
            raise

        counts = self.get_team_counts([profile.user_id for profile in profiles])
        return [UserWithTeamCounts(**profile.model_dump(), team_count=counts[profile.user_id][0], admin_team_count=counts[profile.user_id][1]) for profile in profiles]

    def get_team_counts(self, user_ids: Sequence[str]) -> Dict[str, TeamCounts]:
        """Get ``(team_count, admin_team_count)`` for every user.

        Args:
            user_ids: Users to count

        Returns:
            Dict[str, TeamCounts]: Counts per user; users without memberships get zeros

        Examples:
            >>> from unittest.mock import Mock
            >>> service = UserManagementService(Mock())
            >>> service.get_team_counts([])
            {}
        """
        if not user_ids:
            return {}

        try:
            return self._count_teams_batch(user_ids)
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Batched membership count failed for {len(user_ids)} users: {e}")

        if not settings.membership_count_fallback_enabled:
            return {user_id: ZERO_COUNTS for user_id in user_ids}

        counts: Dict[str, TeamCounts] = {}
        for user_id in user_ids:
            try:
                counts[user_id] = self._count_user_teams(user_id)
            except Exception as e:
                self.db.rollback()
                logger.warning(f"Membership count failed for user {user_id}, reporting zero teams: {e}")
                counts[user_id] = ZERO_COUNTS
        return counts

    def _count_teams_batch(self, user_ids: Sequence[str]) -> Dict[str, TeamCounts]:
        """Count memberships of many users in a single grouped query.

        Args:
            user_ids: Users to count

        Returns:
            Dict[str, TeamCounts]: Counts per user
        """
        results = self.db.execute(
            select(
                TeamMember.user_id,
                func.count(TeamMember.id).label("team_count"),
                func.sum(case((TeamMember.role == MemberRole.ADMIN.value, 1), else_=0)).label("admin_team_count"),
            )
            .where(TeamMember.user_id.in_(user_ids))
            .group_by(TeamMember.user_id)
        ).all()
        self.db.commit()  # Release transaction to avoid idle-in-transaction

        found = {str(row.user_id): (row.team_count or 0, row.admin_team_count or 0) for row in results}
        return {user_id: found.get(user_id, ZERO_COUNTS) for user_id in user_ids}

    def _count_user_teams(self, user_id: str) -> TeamCounts:
        """Count the memberships of a single user.

        Args:
            user_id: User to count

        Returns:
            TeamCounts: ``(team_count, admin_team_count)``
        """
        roles = self.db.execute(select(TeamMember.role).where(TeamMember.user_id == user_id)).scalars().all()
        self.db.commit()  # Release transaction to avoid idle-in-transaction
        return len(roles), sum(1 for role in roles if role == MemberRole.ADMIN.value)

    async def toggle_super_admin(self, user_id: str) -> bool:
        """Flip the super-admin flag of a user.

        No activity is recorded for this change.

        Args:
            user_id: User to update

        Returns:
            bool: The new flag value

        Raises:
            UserNotFoundError: If the user does not exist
            Exception: If the update fails
        """
        try:
            profile = self.db.get(UserProfile, user_id)
            if profile is None:
                logger.warning(f"User {user_id} not found for super admin toggle")
                raise UserNotFoundError(f"User not found: {user_id}")

            profile.is_super_admin = not profile.is_super_admin
            new_value = profile.is_super_admin
            self.db.commit()
        except UserNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to toggle super admin for user {user_id}: {e}")
            raise

        logger.info(f"{'Granted' if new_value else 'Revoked'} super admin for user {user_id}")
        return new_value
