# -*- coding: utf-8 -*-
"""Location: ./volleydash/dashboard/admin_views.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Super-admin view controllers.
Each view owns the queries of one super-admin screen, exposes their state to
the rendering layer and handles the screen's mutations: validate input, call
the service, report the outcome, and reload the affected query once on success.

Examples:
    >>> from unittest.mock import MagicMock
    >>> view = TeamManagementView(MagicMock())
    >>> view.teams.is_idle
    True
"""

# Standard
from typing import List, Optional

# Third-Party
from sqlalchemy.orm import Session

# First-Party
from volleydash.db import Team
from volleydash.schemas import PlatformStats, TeamCreationResult, TeamWithCounts, UserWithTeamCounts
from volleydash.services.logging_service import LoggingService
from volleydash.services.notification_service import get_notification_service, NotificationService
from volleydash.services.stats_service import PlatformStatsService
from volleydash.services.team_management_service import TeamManagementService, TeamValidationError
from volleydash.services.team_onboarding_service import TeamOnboardingService
from volleydash.services.user_management_service import UserManagementService, UserNotFoundError
from volleydash.utils.query_state import QueryState, QueryTracker

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)


class UserManagementView:
    """Users with team counts, search and the super-admin toggle.

    Attributes:
        search: Current search term
    """

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        """Initialize the view.

        Args:
            db: SQLAlchemy database session
            notifications: Notification sink (defaults to the global service)
        """
        self.service = UserManagementService(db)
        self.notifications = notifications or get_notification_service()
        self.search = ""
        self._users: QueryTracker[List[UserWithTeamCounts]] = QueryTracker("users", self._load_users, on_error=lambda _: self.notifications.error("Failed to load users"))

    @property
    def users(self) -> QueryState[List[UserWithTeamCounts]]:
        """Return the user list state.

        Returns:
            QueryState: Users with counts
        """
        return self._users.state

    async def _load_users(self) -> List[UserWithTeamCounts]:
        """Load users matching the current search.

        Returns:
            List[UserWithTeamCounts]: Users with counts
        """
        return await self.service.list_users_with_team_counts(search=self.search or None)

    async def load(self) -> QueryState[List[UserWithTeamCounts]]:
        """(Re)load the user list.

        Returns:
            QueryState: Resulting state
        """
        return await self._users.run()

    async def set_search(self, term: str) -> QueryState[List[UserWithTeamCounts]]:
        """Change the search term and reload.

        Args:
            term: Search text

        Returns:
            QueryState: Resulting state
        """
        self.search = term.strip()
        return await self.load()

    async def toggle_super_admin(self, user_id: str) -> Optional[bool]:
        """Flip a user's super-admin flag and reload the user list.

        Args:
            user_id: User to update

        Returns:
            Optional[bool]: New flag value, or None when the update failed
        """
        try:
            new_value = await self.service.toggle_super_admin(user_id)
        except UserNotFoundError as e:
            self.notifications.error(str(e))
            return None
        except Exception:
            self.notifications.error("Failed to update super admin status")
            return None

        self.notifications.success("Super admin access granted" if new_value else "Super admin access revoked")
        await self.load()
        return new_value


class TeamManagementView:
    """Teams with member counts, team creation (with or without administrators) and deletion.

    Attributes:
        new_team_name: Content of the team name input
    """

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None, current_user_id: Optional[str] = None):
        """Initialize the view.

        Args:
            db: SQLAlchemy database session
            notifications: Notification sink (defaults to the global service)
            current_user_id: Super admin using the view
        """
        self.service = TeamManagementService(db)
        self.onboarding = TeamOnboardingService(db)
        self.notifications = notifications or get_notification_service()
        self.current_user_id = current_user_id
        self.new_team_name = ""
        self._teams: QueryTracker[List[TeamWithCounts]] = QueryTracker("teams", self._load_teams, on_error=lambda _: self.notifications.error("Failed to load teams"))

    @property
    def teams(self) -> QueryState[List[TeamWithCounts]]:
        """Return the team list state.

        Returns:
            QueryState: Teams with counts
        """
        return self._teams.state

    async def _load_teams(self) -> List[TeamWithCounts]:
        """Load every team with its counts.

        Returns:
            List[TeamWithCounts]: Teams, newest first
        """
        return await self.service.list_teams_with_counts()

    async def load(self) -> QueryState[List[TeamWithCounts]]:
        """(Re)load the team list.

        Returns:
            QueryState: Resulting state
        """
        return await self._teams.run()

    async def create_team(self, name: Optional[str] = None, description: Optional[str] = None) -> Optional[Team]:
        """Create a team from the name input (or ``name``) and reload the list.

        A blank name is reported inline and no request is issued. The name
        input is cleared on success and kept on failure.

        Args:
            name: Team name; defaults to ``new_team_name``
            description: Optional description

        Returns:
            Optional[Team]: The new team, or None when rejected or failed
        """
        if name is None:
            name = self.new_team_name
        if not name.strip():
            self.notifications.error("Team name is required")
            return None

        try:
            team = await self.service.create_team(name, created_by=self.current_user_id, description=description)
        except TeamValidationError as e:
            self.notifications.error(str(e))
            return None
        except Exception:
            self.notifications.error("Failed to create team")
            return None

        self.new_team_name = ""
        self.notifications.success("Team created successfully")
        await self.load()
        return team

    async def create_team_with_admins(self, admin_emails: List[str], name: Optional[str] = None, description: Optional[str] = None) -> Optional[TeamCreationResult]:
        """Create a team with its administrators and reload the list.

        The name and the address list are checked before any request. The
        per-address results are returned for display; the outcome notification
        depends on whether at least one administrator was assigned.

        Args:
            admin_emails: Administrator addresses
            name: Team name; defaults to ``new_team_name``
            description: Optional description

        Returns:
            Optional[TeamCreationResult]: Team and assignment results, None when rejected or failed
        """
        if name is None:
            name = self.new_team_name
        if not name.strip():
            self.notifications.error("Team name is required")
            return None
        if not admin_emails:
            self.notifications.error("At least one administrator must be assigned")
            return None

        try:
            result = await self.onboarding.create_team_with_admins(name, admin_emails, created_by=self.current_user_id, description=description)
        except TeamValidationError as e:
            self.notifications.error(str(e))
            return None
        except Exception:
            self.notifications.error("Failed to finalize team creation")
            return None

        self.new_team_name = ""
        if result.assigned_count:
            self.notifications.success(f'Team "{result.team.name}" created with {result.assigned_count} admin(s) assigned!')
        else:
            self.notifications.error("Team created but no admins were assigned successfully")
        await self.load()
        return result

    async def delete_team(self, team_id: str, team_name: str) -> bool:
        """Delete a team with all of its data and reload the list.

        Args:
            team_id: Team to delete
            team_name: Name shown in the notification

        Returns:
            bool: True when the team was deleted
        """
        try:
            await self.service.delete_team(team_id)
        except Exception:
            self.notifications.error("Failed to delete team")
            return False

        self.notifications.success(f'Team "{team_name}" deleted successfully')
        await self.load()
        return True


class PlatformAnalyticsView:
    """Platform-wide totals."""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        """Initialize the view.

        Args:
            db: SQLAlchemy database session
            notifications: Notification sink (defaults to the global service)
        """
        self.service = PlatformStatsService(db)
        self.notifications = notifications or get_notification_service()
        self._stats: QueryTracker[PlatformStats] = QueryTracker("platform_stats", self._load_stats, on_error=lambda _: self.notifications.error("Failed to load analytics"))

    @property
    def stats(self) -> QueryState[PlatformStats]:
        """Return the platform statistics state.

        Returns:
            QueryState: Platform totals
        """
        return self._stats.state

    async def _load_stats(self) -> PlatformStats:
        """Load platform totals.

        Returns:
            PlatformStats: Platform totals
        """
        return await self.service.get_platform_stats()

    async def load(self) -> QueryState[PlatformStats]:
        """(Re)load platform statistics.

        Returns:
            QueryState: Resulting state
        """
        return await self._stats.run()
