# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/team_management_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Team Management Service.
This module provides team creation, settings, deletion and membership
operations for super admins and team administrators. Membership mutations
append an entry to the team activity audit in the same transaction.

Examples:
    >>> from unittest.mock import Mock
    >>> service = TeamManagementService(Mock())
    >>> isinstance(service, TeamManagementService)
    True
    >>> hasattr(service, 'db')
    True
"""

# Standard
from typing import List, Optional

# Third-Party
from pydantic import ValidationError
from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.orm import Session

# First-Party
from volleydash.config import settings
from volleydash.db import CustomGameType, GameDay, Player, Serve, Team, TeamActivityAudit, TeamInvitation, TeamMember, UserProfile, utc_now
from volleydash.schemas import ActivityAction, AdminInvitationCreate, MemberRole, TeamCreate, TeamDataResetResult, TeamMemberRead, TeamSettingsUpdate, TeamWithCounts
from volleydash.services.activity_feed_service import record_activity
from volleydash.services.logging_service import LoggingService
from volleydash.utils.search import contains_pattern, LIKE_ESCAPE

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

VALID_ROLES = [role.value for role in MemberRole]


class TeamManagementError(Exception):
    """Base class for team management-related errors.

    Examples:
        >>> error = TeamManagementError("Test error")
        >>> str(error)
        'Test error'
        >>> isinstance(error, Exception)
        True
    """


class TeamNotFoundError(TeamManagementError):
    """Raised when a team does not exist.

    Examples:
        >>> error = TeamNotFoundError("Team not found: team-123")
        >>> str(error)
        'Team not found: team-123'
        >>> isinstance(error, TeamManagementError)
        True
    """


class TeamValidationError(TeamManagementError):
    """Raised when team input is rejected before any request is issued.

    Examples:
        >>> error = TeamValidationError("Team name is required")
        >>> str(error)
        'Team name is required'
        >>> isinstance(error, TeamManagementError)
        True
    """


class InvalidRoleError(TeamManagementError):
    """Raised when an invalid role is specified.

    Examples:
        >>> error = InvalidRoleError("Invalid role: guest")
        >>> str(error)
        'Invalid role: guest'
        >>> isinstance(error, TeamManagementError)
        True
    """


class MemberNotFoundError(TeamManagementError):
    """Raised when a team membership does not exist.

    Examples:
        >>> error = MemberNotFoundError("Team member not found: m-1")
        >>> isinstance(error, TeamManagementError)
        True
    """


class UserNotRegisteredError(TeamManagementError):
    """Raised when no user profile exists for an e-mail address."""


class AlreadyTeamAdminError(TeamManagementError):
    """Raised when the user already administers the team.

    Examples:
        >>> isinstance(AlreadyTeamAdminError("User is already an admin of this team"), TeamManagementError)
        True
    """


def validation_message(error: ValidationError) -> str:
    """Extract the first human readable message from a validation error.

    Args:
        error: Pydantic validation error

    Returns:
        str: Message without pydantic's ``Value error,`` prefix

    Examples:
        >>> try:
        ...     TeamCreate(name=" ")
        ... except ValidationError as e:
        ...     validation_message(e)
        'Team name is required'
    """
    errors = error.errors()
    if not errors:
        return str(error)
    return str(errors[0].get("msg", error)).removeprefix("Value error, ")


def _member_read(membership: TeamMember, profile: Optional[UserProfile]) -> TeamMemberRead:
    """Combine a membership row with its profile.

    Args:
        membership: Membership row
        profile: Member profile, None when missing

    Returns:
        TeamMemberRead: View model
    """
    return TeamMemberRead(
        id=membership.id,
        team_id=membership.team_id,
        user_id=membership.user_id,
        role=membership.role,
        joined_at=membership.joined_at,
        email=profile.email if profile is not None else None,
        full_name=profile.full_name if profile is not None else None,
    )


# pylint: disable=not-callable
# SQLAlchemy's func.count() is callable at runtime but pylint cannot detect this
class TeamManagementService:
    """Service for team management operations.

    This service handles team listing, creation, settings, data resets and
    deletion, and membership listing, admin assignment, role changes and
    removal.

    Attributes:
        db (Session): SQLAlchemy database session

    Examples:
        >>> from unittest.mock import Mock
        >>> service = TeamManagementService(Mock())
        >>> service.__class__.__name__
        'TeamManagementService'
    """

    def __init__(self, db: Session):
        """Initialize service with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def list_teams_with_counts(self) -> List[TeamWithCounts]:
        """List every team with its member and admin counts, newest first.

        Counts come from one grouped outer join, so teams without members are
        listed with zero counts.

        Returns:
            List[TeamWithCounts]: Teams with counts

        Raises:
            Exception: If the read fails
        """
        stmt = (
            select(
                Team,
                func.count(TeamMember.id).label("member_count"),
                func.sum(case((TeamMember.role == MemberRole.ADMIN.value, 1), else_=0)).label("admin_count"),
            )
            .outerjoin(TeamMember, TeamMember.team_id == Team.id)
            .group_by(Team.id)
            .order_by(Team.created_at.desc())
        )
        try:
            rows = self.db.execute(stmt).all()
            teams = [TeamWithCounts.model_validate(team).model_copy(update={"member_count": member_count or 0, "admin_count": admin_count or 0}) for team, member_count, admin_count in rows]
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to list teams: {e}")
            raise

        return teams

    async def create_team(self, name: str, created_by: Optional[str] = None, description: Optional[str] = None) -> Team:
        """Create a new team.

        Args:
            name: Team name, trimmed before use
            created_by: User id of the creator
            description: Optional description

        Returns:
            Team: The created team

        Raises:
            TeamValidationError: If the trimmed name is empty (no query is issued)
            Exception: If the insert fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> db = Mock()
            >>> service = TeamManagementService(db)
            >>> try:
            ...     asyncio.run(service.create_team("   "))
            ... except TeamValidationError as e:
            ...     print(e)
            Team name is required
            >>> db.add.called
            False
        """
        try:
            payload = TeamCreate(name=name, description=description)
        except ValidationError as e:
            raise TeamValidationError(validation_message(e)) from e

        try:
            team = Team(name=payload.name, description=payload.description, created_by=created_by)
            self.db.add(team)
            self.db.commit()
            self.db.refresh(team)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create team '{payload.name}': {e}")
            raise

        logger.info(f"Created team '{team.name}' by {created_by or 'system'}")
        return team

    async def get_team(self, team_id: str) -> Optional[Team]:
        """Get a team by ID.

        Args:
            team_id: Team ID to lookup

        Returns:
            Optional[Team]: The team or None if not found or the read fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> service = TeamManagementService(Mock())
            >>> asyncio.iscoroutinefunction(service.get_team)
            True
        """
        try:
            team = self.db.get(Team, team_id)
            self.db.commit()  # Release transaction to avoid idle-in-transaction
            return team
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to get team by ID {team_id}: {e}")
            return None

    async def update_team_settings(self, team_id: str, name: str, description: Optional[str] = None, logo_url: Optional[str] = None, updated_by: Optional[str] = None) -> Team:
        """Rename or describe a team.

        A ``team_updated`` audit entry records the old and new name and
        description.

        Args:
            team_id: Team to update
            name: New name, trimmed before use
            description: New description, blank clears it
            logo_url: New logo URL
            updated_by: User id making the change

        Returns:
            Team: The updated team

        Raises:
            TeamValidationError: If the trimmed name is empty
            TeamNotFoundError: If the team does not exist
            Exception: If the update fails
        """
        try:
            payload = TeamSettingsUpdate(name=name, description=description, logo_url=logo_url)
        except ValidationError as e:
            raise TeamValidationError(validation_message(e)) from e

        try:
            team = self.db.get(Team, team_id)
            if team is None:
                logger.warning(f"Team {team_id} not found for update")
                raise TeamNotFoundError(f"Team not found: {team_id}")

            old_values = {"name": team.name, "description": team.description}
            team.name = payload.name
            team.description = payload.description
            if payload.logo_url is not None:
                team.logo_url = payload.logo_url
            team.updated_at = utc_now()
            record_activity(
                self.db,
                team_id,
                "team_updated",
                {"old_values": old_values, "new_values": {"name": payload.name, "description": payload.description}},
                performed_by=updated_by,
            )
            self.db.commit()
            self.db.refresh(team)
        except TeamNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update team {team_id}: {e}")
            raise

        logger.info(f"Updated team {team_id} by {updated_by}")
        return team

    async def delete_team(self, team_id: str) -> bool:
        """Delete a team and everything that belongs to it.

        Memberships, invitations, activity, serves, game days, players and
        custom game types are deleted before the team row, in one transaction.

        Args:
            team_id: Team to delete

        Returns:
            bool: True once the team is deleted

        Raises:
            TeamNotFoundError: If the team does not exist
            Exception: If any delete fails
        """
        try:
            team = self.db.get(Team, team_id)
            if team is None:
                logger.warning(f"Team {team_id} not found for deletion")
                raise TeamNotFoundError(f"Team not found: {team_id}")

            for model in (TeamMember, TeamInvitation, TeamActivityAudit, Serve, GameDay, Player, CustomGameType):
                self.db.execute(delete(model).where(model.team_id == team_id))
            self.db.delete(team)
            self.db.commit()
        except TeamNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete team {team_id}: {e}")
            raise

        logger.info(f"Deleted team {team_id} and its data")
        return True

    async def reset_team_data(self, team_id: str, preserve_players: bool = True, performed_by: Optional[str] = None) -> TeamDataResetResult:
        """Clear a team's recorded games while keeping the team itself.

        Serves and game days are always deleted. With ``preserve_players`` the
        roster stays and every player's totals go back to zero; without it the
        players are deleted too. Members, invitations, settings and custom game
        types are kept. A ``team_data_reset`` audit entry records the outcome.

        Args:
            team_id: Team to reset
            preserve_players: Keep the roster with zeroed totals
            performed_by: User id requesting the reset

        Returns:
            TeamDataResetResult: Rows deleted and players reset

        Raises:
            TeamNotFoundError: If the team does not exist
            Exception: If any statement fails
        """
        try:
            team = self.db.get(Team, team_id)
            if team is None:
                logger.warning(f"Team {team_id} not found for data reset")
                raise TeamNotFoundError(f"Team not found: {team_id}")

            result = TeamDataResetResult(preserve_players=preserve_players)
            result.serves_deleted = self.db.execute(delete(Serve).where(Serve.team_id == team_id)).rowcount or 0
            result.game_days_deleted = self.db.execute(delete(GameDay).where(GameDay.team_id == team_id)).rowcount or 0
            if preserve_players:
                result.players_reset = self.db.execute(update(Player).where(Player.team_id == team_id).values(total_aces=0, total_fails=0, updated_at=utc_now())).rowcount or 0
            else:
                result.players_deleted = self.db.execute(delete(Player).where(Player.team_id == team_id)).rowcount or 0
            record_activity(self.db, team_id, "team_data_reset", result.model_dump(), performed_by=performed_by)
            self.db.commit()
        except TeamNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to reset data of team {team_id}: {e}")
            raise

        logger.info(f"Reset data of team {team_id} (preserve_players={preserve_players}) by {performed_by}")
        return result

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def list_members(self, team_id: str, search: Optional[str] = None, role: Optional[str] = None) -> List[TeamMemberRead]:
        """List the members of a team, most recently joined first.

        Args:
            team_id: Team to list
            search: Case-insensitive filter on e-mail or full name
            role: Only members holding this role

        Returns:
            List[TeamMemberRead]: Memberships joined with profiles

        Raises:
            Exception: If the read fails
        """
        stmt = select(TeamMember, UserProfile).outerjoin(UserProfile, UserProfile.user_id == TeamMember.user_id).where(TeamMember.team_id == team_id)
        pattern = contains_pattern(search)
        if pattern:
            stmt = stmt.where(or_(UserProfile.email.ilike(pattern, escape=LIKE_ESCAPE), UserProfile.full_name.ilike(pattern, escape=LIKE_ESCAPE)))
        if role:
            stmt = stmt.where(TeamMember.role == role)
        stmt = stmt.order_by(TeamMember.joined_at.desc())

        try:
            rows = self.db.execute(stmt).all()
            members = [_member_read(membership, profile) for membership, profile in rows]
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to list members of team {team_id}: {e}")
            raise
        return members

    async def recent_joins(self, team_id: str, limit: Optional[int] = None) -> List[TeamMemberRead]:
        """List the latest members to join a team.

        Args:
            team_id: Team to list
            limit: Maximum rows (defaults to ``settings.recent_joins_limit``)

        Returns:
            List[TeamMemberRead]: Newest memberships first
        """
        members = await self.list_members(team_id)
        if limit is None:
            limit = settings.recent_joins_limit
        return members[:limit]

    async def change_member_role(self, member_id: str, new_role: str, performed_by: Optional[str] = None) -> TeamMember:
        """Change the role of a membership.

        Args:
            member_id: Membership ID
            new_role: ``admin`` or ``member``
            performed_by: User id making the change

        Returns:
            TeamMember: The updated membership

        Raises:
            InvalidRoleError: If the role is outside the closed role set
            MemberNotFoundError: If the membership does not exist
            Exception: If the update fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> service = TeamManagementService(Mock())
            >>> try:
            ...     asyncio.run(service.change_member_role("m-1", "coach"))
            ... except InvalidRoleError as e:
            ...     print(e)
            Invalid role. Must be one of: admin, member
        """
        if new_role not in VALID_ROLES:
            raise InvalidRoleError(f"Invalid role. Must be one of: {', '.join(VALID_ROLES)}")

        try:
            membership = self.db.get(TeamMember, member_id)
            if membership is None:
                logger.warning(f"Team member {member_id} not found")
                raise MemberNotFoundError(f"Team member not found: {member_id}")

            old_role = membership.role
            if old_role == new_role:
                self.db.commit()  # Release transaction to avoid idle-in-transaction
                logger.info(f"Member {member_id} already has role {new_role}")
                return membership

            membership.role = new_role
            member_email = membership.profile.email if membership.profile is not None else None
            record_activity(
                self.db,
                membership.team_id,
                ActivityAction.ROLE_CHANGED.value,
                {"member_email": member_email, "old_role": old_role, "new_role": new_role},
                performed_by=performed_by,
            )
            self.db.commit()
        except MemberNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to change role of member {member_id}: {e}")
            raise

        logger.info(f"Updated role of member {member_id} in team {membership.team_id} from {old_role} to {new_role} by {performed_by}")
        return membership

    async def remove_member(self, member_id: str, performed_by: Optional[str] = None) -> bool:
        """Remove a membership from its team.

        Args:
            member_id: Membership ID
            performed_by: User id removing the member

        Returns:
            bool: True once the member is removed

        Raises:
            MemberNotFoundError: If the membership does not exist
            Exception: If the delete fails
        """
        try:
            membership = self.db.get(TeamMember, member_id)
            if membership is None:
                logger.warning(f"Team member {member_id} not found")
                raise MemberNotFoundError(f"Team member not found: {member_id}")

            team_id = membership.team_id
            member_email = membership.profile.email if membership.profile is not None else None
            record_activity(
                self.db,
                team_id,
                ActivityAction.MEMBER_REMOVED.value,
                {"member_email": member_email, "member_role": membership.role},
                performed_by=performed_by,
            )
            self.db.delete(membership)
            self.db.commit()
        except MemberNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to remove member {member_id}: {e}")
            raise

        logger.info(f"Removed {member_email or member_id} from team {team_id} by {performed_by}")
        return True

    async def assign_team_admin_by_email(self, team_id: str, email: str, performed_by: Optional[str] = None) -> TeamMember:
        """Make a registered user an administrator of a team.

        A user outside the team joins as admin (``member_added``); a member is
        promoted (``role_changed``).

        Args:
            team_id: Team to assign to
            email: Address of a registered user, matched case-insensitively
            performed_by: User id making the assignment

        Returns:
            TeamMember: The admin membership

        Raises:
            TeamValidationError: If the e-mail is malformed (no query is issued)
            TeamNotFoundError: If the team does not exist
            UserNotRegisteredError: If no user has this e-mail
            AlreadyTeamAdminError: If the user already administers the team
            Exception: If the write fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> db = Mock()
            >>> try:
            ...     asyncio.run(TeamManagementService(db).assign_team_admin_by_email("t-1", "nobody"))
            ... except TeamValidationError as e:
            ...     print(e)
            A valid email address is required
            >>> db.get.called
            False
        """
        try:
            normalized = AdminInvitationCreate(email=email).email
        except ValidationError as e:
            raise TeamValidationError(validation_message(e)) from e

        try:
            if self.db.get(Team, team_id) is None:
                raise TeamNotFoundError(f"Team not found: {team_id}")
            profile = self.db.execute(select(UserProfile).where(func.lower(UserProfile.email) == normalized)).scalar_one_or_none()
            if profile is None:
                raise UserNotRegisteredError(f"No user registered with {normalized}")

            membership = self.db.execute(select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == profile.user_id)).scalar_one_or_none()
            if membership is None:
                membership = TeamMember(team_id=team_id, user_id=profile.user_id, role=MemberRole.ADMIN.value, invited_by=performed_by, invited_at=utc_now())
                self.db.add(membership)
                record_activity(self.db, team_id, "member_added", {"member_email": profile.email, "member_role": MemberRole.ADMIN.value}, performed_by=performed_by)
            elif membership.role == MemberRole.ADMIN.value:
                raise AlreadyTeamAdminError("User is already an admin of this team")
            else:
                old_role = membership.role
                membership.role = MemberRole.ADMIN.value
                record_activity(
                    self.db,
                    team_id,
                    ActivityAction.ROLE_CHANGED.value,
                    {"member_email": profile.email, "old_role": old_role, "new_role": MemberRole.ADMIN.value},
                    performed_by=performed_by,
                )
            self.db.commit()
            self.db.refresh(membership)
        except TeamManagementError as e:
            self.db.rollback()
            logger.warning(f"Cannot assign {normalized} as admin of team {team_id}: {e}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to assign {normalized} as admin of team {team_id}: {e}")
            raise

        logger.info(f"Assigned {normalized} as admin of team {team_id} by {performed_by}")
        return membership
