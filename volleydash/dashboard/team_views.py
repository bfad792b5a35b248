# -*- coding: utf-8 -*-
"""Location: ./volleydash/dashboard/team_views.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Team dashboard view controller.
``TeamDashboardView`` owns every query of the per-team dashboard (overview,
members, invitations, game types, activity log) and the mutations of its tabs. Selecting a
team re-runs all of them concurrently; clearing the selection resets them to
idle without issuing any request.

Examples:
    >>> import asyncio
    >>> from unittest.mock import MagicMock
    >>> view = TeamDashboardView(MagicMock())
    >>> asyncio.run(view.set_team(None))
    >>> view.activity.is_idle and view.members.is_idle
    True
"""

# Standard
import asyncio
from typing import List, Optional

# Third-Party
from sqlalchemy.orm import Session

# First-Party
from volleydash.db import CustomGameType, TeamInvitation
from volleydash.schemas import ActivityRecord, GameTypeCatalog, InvitationRead, TeamMemberRead, TeamOverview, TeamRead
from volleydash.services.activity_feed_service import ActivityFeedService
from volleydash.services.game_type_service import GameTypeService, GameTypeValidationError
from volleydash.services.invitation_service import InvitationError, InvitationService
from volleydash.services.logging_service import LoggingService
from volleydash.services.notification_service import get_notification_service, NotificationService
from volleydash.services.stats_service import TeamStatsService
from volleydash.services.team_management_service import TeamManagementError, TeamManagementService, TeamNotFoundError
from volleydash.utils.query_state import QueryState, QueryTracker

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class TeamDashboardView:
    """Queries and mutations of the team dashboard tabs.

    Attributes:
        team_id: Selected team, None when nothing is selected
        member_search: Search term of the members tab
        member_role: Role filter of the members tab
    """

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None, current_user_id: Optional[str] = None):
        """Initialize the view.

        Args:
            db: SQLAlchemy database session
            notifications: Notification sink (defaults to the global service)
            current_user_id: Team administrator using the view
        """
        self.teams = TeamManagementService(db)
        self.stats_service = TeamStatsService(db)
        self.activity_service = ActivityFeedService(db)
        self.invitations_service = InvitationService(db)
        self.game_types_service = GameTypeService(db)
        self.notifications = notifications or get_notification_service()
        self.current_user_id = current_user_id

        self.team_id: Optional[str] = None
        self.member_search = ""
        self.member_role: Optional[str] = None

        self._overview: QueryTracker[TeamOverview] = QueryTracker("team_overview", self._load_overview, on_error=self._error_reporter("Failed to load team overview"))
        self._members: QueryTracker[List[TeamMemberRead]] = QueryTracker("team_members", self._load_members, on_error=self._error_reporter("Failed to load team members"))
        self._invitations: QueryTracker[List[InvitationRead]] = QueryTracker("team_invitations", self._load_invitations, on_error=self._error_reporter("Failed to load invitations"))
        self._activity: QueryTracker[Optional[List[ActivityRecord]]] = QueryTracker("team_activity", self._load_activity, on_error=self._error_reporter("Failed to load activity"))
        self._game_types: QueryTracker[GameTypeCatalog] = QueryTracker("team_game_types", self._load_game_types, on_error=self._error_reporter("Failed to load game types"))

    def _error_reporter(self, message: str):
        """Build an error callback that emits a fixed notification.

        Args:
            message: Text shown to the user

        Returns:
            Callable: Error callback for a QueryTracker
        """

        def report(_: BaseException) -> None:
            self.notifications.error(message)

        return report

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def overview(self) -> QueryState[TeamOverview]:
        """Return the overview tab state.

        Returns:
            QueryState: Team details, statistics and latest activity
        """
        return self._overview.state

    @property
    def members(self) -> QueryState[List[TeamMemberRead]]:
        """Return the members tab state.

        Returns:
            QueryState: Members matching the search and role filter
        """
        return self._members.state

    @property
    def invitations(self) -> QueryState[List[InvitationRead]]:
        """Return the invitations tab state.

        Returns:
            QueryState: Active invitations
        """
        return self._invitations.state

    @property
    def game_types(self) -> QueryState[GameTypeCatalog]:
        """Return the game types tab state.

        Returns:
            QueryState: Built-in and custom game types with usage
        """
        return self._game_types.state

    @property
    def activity(self) -> QueryState[Optional[List[ActivityRecord]]]:
        """Return the activity tab state.

        Returns:
            QueryState: Latest activity, data None when no data could be read
        """
        return self._activity.state

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    async def _load_overview(self, team_id: str) -> TeamOverview:
        """Load team details, statistics and latest activity.

        Args:
            team_id: Team to load

        Returns:
            TeamOverview: Overview data

        Raises:
            TeamNotFoundError: If the team cannot be read
        """
        team = await self.teams.get_team(team_id)
        if team is None:
            raise TeamNotFoundError(f"Team not found: {team_id}")
        details = TeamRead.model_validate(team)
        stats = await self.stats_service.get_team_stats(team_id)
        recent = await self.activity_service.get_recent_activity(team_id)
        return TeamOverview(team=details, stats=stats, recent_activity=recent or [])

    async def _load_members(self, team_id: str) -> List[TeamMemberRead]:
        """Load the members tab.

        Args:
            team_id: Team to load

        Returns:
            List[TeamMemberRead]: Members
        """
        return await self.teams.list_members(team_id, search=self.member_search or None, role=self.member_role)

    async def _load_invitations(self, team_id: str) -> List[InvitationRead]:
        """Load the invitations tab.

        Args:
            team_id: Team to load

        Returns:
            List[InvitationRead]: Active invitations
        """
        return await self.invitations_service.list_active_invitations(team_id)

    async def _load_game_types(self, team_id: str) -> GameTypeCatalog:
        """Load the game types tab.

        Args:
            team_id: Team to load

        Returns:
            GameTypeCatalog: Built-in and custom game types
        """
        return await self.game_types_service.list_game_types(team_id)

    async def _load_activity(self, team_id: str) -> Optional[List[ActivityRecord]]:
        """Load the activity tab.

        Args:
            team_id: Team to load

        Returns:
            Optional[List[ActivityRecord]]: Latest activity, None when unavailable
        """
        return await self.activity_service.get_team_activity(team_id)

    async def set_team(self, team_id: Optional[str]) -> None:
        """Select a team and reload every tab.

        Args:
            team_id: Team to show; None clears the dashboard without any request
        """
        self.team_id = team_id or None
        if self.team_id is None:
            for tracker in (self._overview, self._members, self._invitations, self._game_types, self._activity):
                tracker.reset()
            return
        await self.reload_all()

    async def reload_all(self) -> None:
        """Re-run every tab query for the selected team concurrently."""
        if self.team_id is None:
            return
        team_id = self.team_id
        await asyncio.gather(
            self._overview.run(team_id),
            self._members.run(team_id),
            self._invitations.run(team_id),
            self._game_types.run(team_id),
            self._activity.run(team_id),
        )

    async def reload_overview(self) -> QueryState[TeamOverview]:
        """Re-run the overview query.

        Returns:
            QueryState: Resulting state
        """
        return await self._overview.run(self.team_id)

    async def reload_members(self) -> QueryState[List[TeamMemberRead]]:
        """Re-run the members query.

        Returns:
            QueryState: Resulting state
        """
        return await self._members.run(self.team_id)

    async def reload_invitations(self) -> QueryState[List[InvitationRead]]:
        """Re-run the invitations query.

        Returns:
            QueryState: Resulting state
        """
        return await self._invitations.run(self.team_id)

    async def reload_game_types(self) -> QueryState[GameTypeCatalog]:
        """Re-run the game types query.

        Returns:
            QueryState: Resulting state
        """
        return await self._game_types.run(self.team_id)

    async def reload_activity(self) -> QueryState[Optional[List[ActivityRecord]]]:
        """Re-run the activity query.

        Returns:
            QueryState: Resulting state
        """
        return await self._activity.run(self.team_id)

    async def search_members(self, term: str, role: Optional[str] = None) -> QueryState[List[TeamMemberRead]]:
        """Filter the members tab and reload it.

        Args:
            term: Search text on e-mail or name
            role: Only show members with this role

        Returns:
            QueryState: Resulting state
        """
        self.member_search = term.strip()
        self.member_role = role or None
        return await self.reload_members()

    # ------------------------------------------------------------------
    # Members tab
    # ------------------------------------------------------------------

    async def change_member_role(self, member_id: str, new_role: str) -> bool:
        """Change a member's role, then reload members, overview and activity.

        Args:
            member_id: Membership to update
            new_role: ``admin`` or ``member``

        Returns:
            bool: True on success
        """
        try:
            await self.teams.change_member_role(member_id, new_role, performed_by=self.current_user_id)
        except TeamManagementError as e:
            self.notifications.error(str(e))
            return False
        except Exception:
            self.notifications.error("Failed to update member role")
            return False

        self.notifications.success("Member role updated successfully")
        await asyncio.gather(self.reload_members(), self.reload_overview(), self.reload_activity())
        return True

    async def remove_member(self, member_id: str) -> bool:
        """Remove a member, then reload members, overview and activity.

        Args:
            member_id: Membership to remove

        Returns:
            bool: True on success
        """
        try:
            await self.teams.remove_member(member_id, performed_by=self.current_user_id)
        except TeamManagementError as e:
            self.notifications.error(str(e))
            return False
        except Exception:
            self.notifications.error("Failed to remove member")
            return False

        self.notifications.success("Member removed successfully")
        await asyncio.gather(self.reload_members(), self.reload_overview(), self.reload_activity())
        return True

    # ------------------------------------------------------------------
    # Invitations tab
    # ------------------------------------------------------------------

    async def create_member_invitation(self) -> Optional[TeamInvitation]:
        """Create a member invite link and reload invitations.

        Returns:
            Optional[TeamInvitation]: New invitation, None on failure
        """
        if self.team_id is None:
            return None
        try:
            invitation = await self.invitations_service.create_member_invitation(self.team_id, created_by=self.current_user_id)
        except Exception:
            self.notifications.error("Failed to create invitation link")
            return None

        self.notifications.success("Member invitation link created")
        await self.reload_invitations()
        return invitation

    async def create_admin_invitation(self, email: str) -> Optional[TeamInvitation]:
        """Invite an administrator by e-mail, then reload invitations and activity.

        Args:
            email: Address of the invited administrator

        Returns:
            Optional[TeamInvitation]: New invitation, None when rejected or failed
        """
        if self.team_id is None:
            return None
        if not email.strip():
            self.notifications.error("Email is required")
            return None
        try:
            invitation = await self.invitations_service.create_admin_invitation(self.team_id, email, created_by=self.current_user_id)
        except InvitationError as e:
            self.notifications.error(str(e))
            return None
        except Exception:
            self.notifications.error("Failed to create admin invitation")
            return None

        self.notifications.success("Admin invitation created and sent")
        await asyncio.gather(self.reload_invitations(), self.reload_activity())
        return invitation

    async def deactivate_invitation(self, invitation_id: str) -> bool:
        """Deactivate an invitation and reload invitations.

        Args:
            invitation_id: Invitation to deactivate

        Returns:
            bool: True on success
        """
        try:
            await self.invitations_service.deactivate_invitation(invitation_id)
        except Exception:
            self.notifications.error("Failed to deactivate invitation")
            return False

        self.notifications.success("Invitation deactivated")
        await self.reload_invitations()
        return True

    # ------------------------------------------------------------------
    # Game types tab
    # ------------------------------------------------------------------

    async def create_game_type(self, name: str, abbreviation: str) -> Optional[CustomGameType]:
        """Add a custom game type and reload the game types.

        Blank fields are reported inline and no request is issued.

        Args:
            name: Display name
            abbreviation: Short code

        Returns:
            Optional[CustomGameType]: New type, None when rejected or failed
        """
        if self.team_id is None:
            return None
        try:
            game_type = await self.game_types_service.create_game_type(self.team_id, name, abbreviation)
        except GameTypeValidationError as e:
            self.notifications.error(str(e))
            return None
        except Exception as e:
            self.notifications.error(f"Failed to create game type: {e}")
            return None

        self.notifications.success("Game type created successfully")
        await self.reload_game_types()
        return game_type

    async def update_game_type(self, game_type_id: str, name: str, abbreviation: str) -> bool:
        """Rename a custom game type and reload the game types.

        Args:
            game_type_id: Type to update
            name: New display name
            abbreviation: New short code

        Returns:
            bool: True on success
        """
        try:
            await self.game_types_service.update_game_type(game_type_id, name, abbreviation)
        except GameTypeValidationError as e:
            self.notifications.error(str(e))
            return False
        except Exception as e:
            self.notifications.error(f"Failed to update game type: {e}")
            return False

        self.notifications.success("Game type updated successfully")
        await self.reload_game_types()
        return True

    async def delete_game_type(self, game_type_id: str) -> bool:
        """Delete a custom game type and reload the game types.

        Args:
            game_type_id: Type to delete

        Returns:
            bool: True on success
        """
        try:
            await self.game_types_service.delete_game_type(game_type_id)
        except Exception as e:
            self.notifications.error(f"Failed to delete game type: {e}")
            return False

        self.notifications.success("Game type deleted successfully")
        await self.reload_game_types()
        return True

    # ------------------------------------------------------------------
    # Settings tab
    # ------------------------------------------------------------------

    async def update_settings(self, name: str, description: Optional[str] = None) -> bool:
        """Rename or describe the team, then reload the overview and activity.

        A blank name is reported inline and no request is issued.

        Args:
            name: New team name
            description: New description

        Returns:
            bool: True on success
        """
        if self.team_id is None:
            return False
        if not name.strip():
            self.notifications.error("Team name is required")
            return False
        try:
            await self.teams.update_team_settings(self.team_id, name, description=description, updated_by=self.current_user_id)
        except Exception:
            self.notifications.error("Failed to update team settings")
            return False

        self.notifications.success("Team settings updated successfully")
        await asyncio.gather(self.reload_overview(), self.reload_activity())
        return True

    async def reset_team_data(self, preserve_players: bool = True) -> bool:
        """Clear the team's games and serves, then reload the affected tabs.

        Args:
            preserve_players: Keep the roster with zeroed totals

        Returns:
            bool: True on success
        """
        if self.team_id is None:
            return False
        try:
            await self.teams.reset_team_data(self.team_id, preserve_players=preserve_players, performed_by=self.current_user_id)
        except Exception:
            self.notifications.error("Failed to reset team data")
            return False

        self.notifications.success("Team data reset successfully (players preserved)" if preserve_players else "Team data reset successfully (all data cleared)")
        await asyncio.gather(self.reload_overview(), self.reload_game_types(), self.reload_activity())
        return True

    async def delete_team(self) -> bool:
        """Delete the selected team and clear the dashboard.

        Returns:
            bool: True on success
        """
        if self.team_id is None:
            return False
        try:
            await self.teams.delete_team(self.team_id)
        except Exception:
            self.notifications.error("Failed to delete team")
            return False

        self.notifications.success("Team deleted successfully")
        await self.set_team(None)
        return True
