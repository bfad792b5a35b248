# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/invitation_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Team Invitation Service.
This module creates, lists, deactivates, validates and accepts team invite
codes. Member invitations are shareable links with a use limit; admin
invitations are single-use and addressed to one e-mail.

Examples:
    >>> code = generate_invite_code(8)
    >>> len(code), code == code.upper()
    (8, True)
"""

# Standard
from datetime import timedelta, timezone
import secrets
import string
from typing import List, Optional

# Third-Party
from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

# First-Party
from volleydash.config import settings
from volleydash.db import Team, TeamInvitation, TeamMember, UserProfile, utc_now
from volleydash.schemas import ActivityAction, AdminInvitationCreate, InvitationRead, InvitationType, InviteValidation, MemberRole
from volleydash.services.activity_feed_service import record_activity
from volleydash.services.logging_service import LoggingService
from volleydash.services.team_management_service import TeamNotFoundError, validation_message

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
_MAX_CODE_ATTEMPTS = 5


class InvitationError(Exception):
    """Base class for invitation-related errors.

    Examples:
        >>> error = InvitationError("Test error")
        >>> str(error)
        'Test error'
        >>> isinstance(error, Exception)
        True
    """


class InvitationNotFoundError(InvitationError):
    """Raised when an invitation does not exist.

    Examples:
        >>> isinstance(InvitationNotFoundError("Invitation not found: i-1"), InvitationError)
        True
    """


class InvalidInvitationError(InvitationError):
    """Raised when an invite code or invitation input is rejected.

    Examples:
        >>> str(InvalidInvitationError("This invite code has expired"))
        'This invite code has expired'
    """


class AlreadyTeamMemberError(InvitationError):
    """Raised when the accepting user already belongs to the team.

    Examples:
        >>> isinstance(AlreadyTeamMemberError("You are already a member of this team"), InvitationError)
        True
    """


def generate_invite_code(length: Optional[int] = None) -> str:
    """Generate a random upper-case invite code.

    Args:
        length: Code length (defaults to ``settings.invite_code_length``)

    Returns:
        str: Code made of upper-case letters and digits

    Examples:
        >>> set(generate_invite_code(32)) <= set(INVITE_CODE_ALPHABET)
        True
    """
    if length is None:
        length = settings.invite_code_length
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def check_invitation(invitation: Optional[TeamInvitation]) -> Optional[str]:
    """Return why an invitation cannot be used, or None when it can.

    Args:
        invitation: Invitation looked up by code

    Returns:
        Optional[str]: Error message for unknown, inactive, expired or exhausted codes

    Examples:
        >>> check_invitation(None)
        'Invalid invite code'
        >>> check_invitation(TeamInvitation(is_active=False, current_uses=0))
        'This invite code is no longer active'
        >>> check_invitation(TeamInvitation(is_active=True, current_uses=10, max_uses=10))
        'This invite code has reached its maximum uses'
        >>> check_invitation(TeamInvitation(is_active=True, current_uses=0)) is None
        True
    """
    if invitation is None:
        return "Invalid invite code"
    if not invitation.is_active:
        return "This invite code is no longer active"
    expires_at = invitation.expires_at
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= utc_now():
            return "This invite code has expired"
    if invitation.max_uses is not None and (invitation.current_uses or 0) >= invitation.max_uses:
        return "This invite code has reached its maximum uses"
    return None


class InvitationService:
    """Service for team invitation operations.

    Attributes:
        db (Session): SQLAlchemy database session

    Examples:
        >>> from unittest.mock import Mock
        >>> service = InvitationService(Mock())
        >>> hasattr(service, 'db')
        True
    """

    def __init__(self, db: Session):
        """Initialize service with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def _unique_code(self) -> str:
        """Generate a code that no existing invitation uses.

        Returns:
            str: Unused invite code

        Raises:
            InvitationError: If every attempt collides
        """
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = generate_invite_code()
            if self.db.execute(select(TeamInvitation.id).where(TeamInvitation.invite_code == code)).first() is None:
                return code
        raise InvitationError("Could not generate a unique invite code")

    def _require_team(self, team_id: str) -> Team:
        """Load a team or raise.

        Args:
            team_id: Team ID

        Returns:
            Team: The team

        Raises:
            TeamNotFoundError: If the team does not exist
        """
        team = self.db.get(Team, team_id)
        if team is None:
            logger.warning(f"Team {team_id} not found for invitation")
            raise TeamNotFoundError(f"Team not found: {team_id}")
        return team

    async def create_member_invitation(self, team_id: str, created_by: Optional[str] = None) -> TeamInvitation:
        """Create a shareable member invite code.

        Args:
            team_id: Team to invite into
            created_by: User id creating the invitation

        Returns:
            TeamInvitation: Active invitation with a use limit and expiry

        Raises:
            TeamNotFoundError: If the team does not exist
            Exception: If the insert fails
        """
        try:
            self._require_team(team_id)
            invitation = TeamInvitation(
                team_id=team_id,
                invite_code=self._unique_code(),
                invitation_type=InvitationType.MEMBER.value,
                admin_role=False,
                created_by=created_by,
                expires_at=utc_now() + timedelta(days=settings.invitation_expiry_days),
                max_uses=settings.invitation_max_uses,
                current_uses=0,
                is_active=True,
            )
            self.db.add(invitation)
            self.db.commit()
            self.db.refresh(invitation)
        except TeamNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create member invitation for team {team_id}: {e}")
            raise

        logger.info(f"Created member invitation for team {team_id} by {created_by}")
        return invitation

    async def create_admin_invitation(self, team_id: str, email: str, created_by: Optional[str] = None) -> TeamInvitation:
        """Invite an administrator by e-mail.

        Args:
            team_id: Team to invite into
            email: Address of the invited administrator
            created_by: User id creating the invitation

        Returns:
            TeamInvitation: Single-use admin invitation

        Raises:
            InvalidInvitationError: If the e-mail is rejected (no query is issued)
            TeamNotFoundError: If the team does not exist
            Exception: If the insert fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> db = Mock()
            >>> try:
            ...     asyncio.run(InvitationService(db).create_admin_invitation("t-1", "not-an-email"))
            ... except InvalidInvitationError as e:
            ...     print(e)
            A valid email address is required
            >>> db.get.called
            False
        """
        try:
            payload = AdminInvitationCreate(email=email)
        except ValidationError as e:
            raise InvalidInvitationError(validation_message(e)) from e

        try:
            self._require_team(team_id)
            invitation = TeamInvitation(
                team_id=team_id,
                invite_code=self._unique_code(),
                invitation_type=InvitationType.ADMIN.value,
                invited_email=payload.email,
                admin_role=True,
                created_by=created_by,
                expires_at=utc_now() + timedelta(days=settings.invitation_expiry_days),
                max_uses=1,
                current_uses=0,
                is_active=True,
            )
            self.db.add(invitation)
            record_activity(self.db, team_id, ActivityAction.INVITATION_SENT.value, {"invited_email": payload.email}, performed_by=created_by)
            self.db.commit()
            self.db.refresh(invitation)
        except TeamNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create admin invitation for {payload.email} in team {team_id}: {e}")
            raise

        logger.info(f"Created admin invitation for {payload.email} in team {team_id} by {created_by}")
        return invitation

    async def list_active_invitations(self, team_id: str) -> List[InvitationRead]:
        """List the active invitations of a team, newest first.

        Args:
            team_id: Team to list

        Returns:
            List[InvitationRead]: Active invitations

        Raises:
            Exception: If the read fails
        """
        stmt = select(TeamInvitation).where(TeamInvitation.team_id == team_id, TeamInvitation.is_active.is_(True)).order_by(TeamInvitation.created_at.desc())
        try:
            invitations = [InvitationRead.model_validate(inv) for inv in self.db.execute(stmt).scalars().all()]
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to list invitations of team {team_id}: {e}")
            raise
        return invitations

    async def get_active_invite_code(self, team_id: str) -> Optional[str]:
        """Return the latest active, unexpired member invite code of a team.

        Args:
            team_id: Team to look up

        Returns:
            Optional[str]: Invite code, or None when there is none or the read fails
        """
        stmt = (
            select(TeamInvitation.invite_code)
            .where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.is_active.is_(True),
                TeamInvitation.invitation_type == InvitationType.MEMBER.value,
                or_(TeamInvitation.expires_at.is_(None), TeamInvitation.expires_at > utc_now()),
            )
            .order_by(TeamInvitation.created_at.desc())
            .limit(1)
        )
        try:
            code = self.db.execute(stmt).scalar_one_or_none()
            self.db.commit()  # Release transaction to avoid idle-in-transaction
            return code
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to load invite code for team {team_id}: {e}")
            return None

    async def deactivate_invitation(self, invitation_id: str) -> bool:
        """Deactivate an invitation so its code can no longer be used.

        Args:
            invitation_id: Invitation ID

        Returns:
            bool: True once deactivated

        Raises:
            InvitationNotFoundError: If the invitation does not exist
            Exception: If the update fails
        """
        try:
            invitation = self.db.get(TeamInvitation, invitation_id)
            if invitation is None:
                logger.warning(f"Invitation {invitation_id} not found for deactivation")
                raise InvitationNotFoundError(f"Invitation not found: {invitation_id}")
            invitation.is_active = False
            self.db.commit()
        except InvitationNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to deactivate invitation {invitation_id}: {e}")
            raise

        logger.info(f"Deactivated invitation {invitation_id}")
        return True

    def _find_by_code(self, code: str) -> Optional[TeamInvitation]:
        """Look up an invitation by its code, ignoring case and padding.

        Args:
            code: Invite code as entered

        Returns:
            Optional[TeamInvitation]: Matching invitation
        """
        normalized = (code or "").strip().upper()
        if not normalized:
            return None
        return self.db.execute(select(TeamInvitation).where(TeamInvitation.invite_code == normalized)).scalar_one_or_none()

    async def validate_invite_code(self, code: str) -> InviteValidation:
        """Check whether an invite code can be used.

        Args:
            code: Invite code as entered

        Returns:
            InviteValidation: Validity, target team and role, or the reason it is invalid

        Raises:
            Exception: If the read fails
        """
        try:
            invitation = self._find_by_code(code)
            error_message = check_invitation(invitation)
            if error_message is not None:
                self.db.commit()  # Release transaction to avoid idle-in-transaction
                return InviteValidation(is_valid=False, error_message=error_message)

            validation = InviteValidation(
                is_valid=True,
                invitation_id=invitation.id,
                team_id=invitation.team_id,
                team_name=invitation.team.name if invitation.team is not None else None,
                admin_role=invitation.admin_role,
                invitation_type=invitation.invitation_type,
                invited_email=invitation.invited_email,
            )
            self.db.commit()  # Release transaction to avoid idle-in-transaction
            return validation
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to validate invite code: {e}")
            raise

    async def accept_invitation(self, code: str, user_id: str) -> TeamMember:
        """Join a team with an invite code.

        Args:
            code: Invite code as entered
            user_id: User joining the team

        Returns:
            TeamMember: The new membership (admin for admin invitations)

        Raises:
            InvalidInvitationError: If the code cannot be used
            AlreadyTeamMemberError: If the user already belongs to the team
            Exception: If the insert fails
        """
        try:
            invitation = self._find_by_code(code)
            error_message = check_invitation(invitation)
            if error_message is not None:
                raise InvalidInvitationError(error_message)

            existing = self.db.execute(select(TeamMember.id).where(TeamMember.team_id == invitation.team_id, TeamMember.user_id == user_id)).first()
            if existing is not None:
                raise AlreadyTeamMemberError("You are already a member of this team")

            now = utc_now()
            role = MemberRole.ADMIN.value if invitation.admin_role else MemberRole.MEMBER.value
            membership = TeamMember(team_id=invitation.team_id, user_id=user_id, role=role, joined_at=now, invited_by=invitation.created_by, invited_at=invitation.created_at)
            self.db.add(membership)

            invitation.current_uses = (invitation.current_uses or 0) + 1
            invitation.last_used_at = now
            if invitation.invitation_type == InvitationType.ADMIN.value:
                invitation.accepted_at = now
                invitation.accepted_by = user_id
                invitation.is_active = False

            profile = self.db.get(UserProfile, user_id)
            record_activity(
                self.db,
                invitation.team_id,
                "member_added",
                {"member_email": profile.email if profile is not None else None, "member_role": role, "invitation_type": invitation.invitation_type},
                performed_by=user_id,
            )
            self.db.commit()
        except (InvalidInvitationError, AlreadyTeamMemberError):
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"User {user_id} joined team concurrently, rejecting invite: {e}")
            raise AlreadyTeamMemberError("You are already a member of this team") from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to accept invitation for user {user_id}: {e}")
            raise

        logger.info(f"User {user_id} joined team {membership.team_id} as {role}")
        return membership
