# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/team_onboarding_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Team Onboarding Service.
Creates a team together with its administrators. Registered users are made
admins directly; any other address receives a single-use admin invitation.
Each address gets its own result, so one failed assignment does not undo the
team or the other assignments.
"""

# Standard
from typing import List, Optional

# Third-Party
from pydantic import ValidationError
from sqlalchemy.orm import Session

# First-Party
from volleydash.schemas import AdminAssignmentResult, TeamCreateWithAdmins, TeamCreationResult, TeamRead
from volleydash.services.invitation_service import InvitationService
from volleydash.services.logging_service import LoggingService
from volleydash.services.team_management_service import TeamManagementError, TeamManagementService, TeamValidationError, UserNotRegisteredError, validation_message

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

ASSIGNMENT_FAILED = "Error processing admin assignment"


class TeamOnboardingService:
    """Create teams with their first administrators.

    Attributes:
        teams (TeamManagementService): Team and membership operations
        invitations (InvitationService): Admin invitations for unregistered addresses

    Examples:
        >>> from unittest.mock import Mock
        >>> service = TeamOnboardingService(Mock())
        >>> type(service.invitations).__name__
        'InvitationService'
    """

    def __init__(self, db: Session):
        """Initialize service with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.teams = TeamManagementService(db)
        self.invitations = InvitationService(db)

    async def create_team_with_admins(self, name: str, admin_emails: List[str], created_by: Optional[str] = None, description: Optional[str] = None) -> TeamCreationResult:
        """Create a team and assign every listed administrator.

        Args:
            name: Team name, trimmed before use
            admin_emails: At least one distinct administrator address
            created_by: User id of the creator
            description: Optional description

        Returns:
            TeamCreationResult: The team and one result per address

        Raises:
            TeamValidationError: If the name or the address list is rejected (no query is issued)
            Exception: If the team insert fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> db = Mock()
            >>> try:
            ...     asyncio.run(TeamOnboardingService(db).create_team_with_admins("Thunder", []))
            ... except TeamValidationError as e:
            ...     print(e)
            At least one administrator must be assigned
            >>> db.add.called
            False
        """
        try:
            payload = TeamCreateWithAdmins(name=name, description=description, admin_emails=admin_emails)
        except ValidationError as e:
            raise TeamValidationError(validation_message(e)) from e

        team = await self.teams.create_team(payload.name, created_by=created_by, description=payload.description)
        results = [await self._assign(team.id, email, created_by) for email in payload.admin_emails]

        assigned = sum(1 for result in results if result.success)
        logger.info(f"Created team '{team.name}' with {assigned} of {len(results)} admin(s) assigned by {created_by or 'system'}")
        return TeamCreationResult(team=TeamRead.model_validate(team), results=results)

    async def _assign(self, team_id: str, email: str, created_by: Optional[str]) -> AdminAssignmentResult:
        """Assign one administrator, inviting the address when it is unregistered.

        Args:
            team_id: New team
            email: Normalized administrator address
            created_by: User id making the assignment

        Returns:
            AdminAssignmentResult: Outcome for this address
        """
        try:
            await self.teams.assign_team_admin_by_email(team_id, email, performed_by=created_by)
            return AdminAssignmentResult(email=email, success=True, message="Successfully assigned as admin")
        except UserNotRegisteredError:
            pass
        except TeamManagementError as e:
            return AdminAssignmentResult(email=email, success=False, message=str(e))
        except Exception as e:
            logger.error(f"Failed to assign {email} as admin of team {team_id}: {e}")
            return AdminAssignmentResult(email=email, success=False, message=ASSIGNMENT_FAILED)

        try:
            invitation = await self.invitations.create_admin_invitation(team_id, email, created_by=created_by)
        except Exception as e:
            logger.error(f"Failed to invite {email} as admin of team {team_id}: {e}")
            return AdminAssignmentResult(email=email, success=False, message=ASSIGNMENT_FAILED)
        return AdminAssignmentResult(email=email, success=True, message=f"Admin invitation ready (Code: {invitation.invite_code})", invite_code=invitation.invite_code)
