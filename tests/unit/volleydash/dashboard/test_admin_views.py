# -*- coding: utf-8 -*-
"""Location: ./tests/unit/volleydash/dashboard/test_admin_views.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tests for the super-admin view controllers.
"""

# Standard
from unittest.mock import AsyncMock, patch

# Third-Party
import pytest
from sqlalchemy.exc import OperationalError

# First-Party
from tests.helpers.factories import add_member, add_serve, make_team, make_user
from volleydash.dashboard import PlatformAnalyticsView, TeamManagementView, UserManagementView
from volleydash.db import UserProfile


def _messages(notifications):
    return [(n.level.value, n.message) for n in notifications.history]


class TestTeamManagementView:
    @pytest.mark.asyncio
    async def test_blank_name_issues_no_request(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)
        view.new_team_name = "   "

        with patch.object(view.service, "create_team", new_callable=AsyncMock) as create, patch.object(view.service, "list_teams_with_counts", new_callable=AsyncMock) as listing:
            assert await view.create_team() is None

        create.assert_not_called()
        listing.assert_not_called()
        assert _messages(notifications) == [("error", "Team name is required")]
        assert view.new_team_name == "   "

    @pytest.mark.asyncio
    async def test_create_reloads_list_and_clears_input(self, test_db, notifications):
        root = make_user(test_db, "root@club.test", is_super_admin=True)
        view = TeamManagementView(test_db, notifications, current_user_id=root.user_id)
        await view.load()
        assert view.teams.data == []

        view.new_team_name = "  Thunder "
        team = await view.create_team()

        assert team.name == "Thunder"
        assert view.new_team_name == ""
        assert [t.name for t in view.teams.data] == ["Thunder"]
        assert view.teams.data[0].created_by == root.user_id
        assert _messages(notifications) == [("success", "Team created successfully")]

    @pytest.mark.asyncio
    async def test_create_reloads_exactly_once(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)

        with patch.object(view, "load", new_callable=AsyncMock) as load:
            await view.create_team("Sharks")

        load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_create_keeps_input(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)
        view.new_team_name = "Thunder"

        with patch.object(view.service, "create_team", new_callable=AsyncMock, side_effect=OperationalError("INSERT", {}, Exception("down"))), patch.object(
            view, "load", new_callable=AsyncMock
        ) as load:
            assert await view.create_team() is None

        load.assert_not_called()
        assert view.new_team_name == "Thunder"
        assert _messages(notifications) == [("error", "Failed to create team")]

    @pytest.mark.asyncio
    async def test_list_counts(self, test_db, notifications):
        team = make_team(test_db, "Thunder")
        add_member(test_db, team, make_user(test_db, "a@club.test"), role="admin")
        add_member(test_db, team, make_user(test_db, "b@club.test"))

        state = await TeamManagementView(test_db, notifications).load()

        assert state.is_success
        assert (state.data[0].member_count, state.data[0].admin_count) == (2, 1)

    @pytest.mark.asyncio
    async def test_list_failure_notifies(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)
        with patch.object(view.service, "list_teams_with_counts", new_callable=AsyncMock, side_effect=OperationalError("SELECT", {}, Exception("down"))):
            state = await view.load()

        assert state.is_error
        assert _messages(notifications) == [("error", "Failed to load teams")]

    @pytest.mark.asyncio
    async def test_delete_team(self, test_db, notifications):
        team = make_team(test_db, "Sharks")
        view = TeamManagementView(test_db, notifications)

        assert await view.delete_team(team.id, "Sharks") is True

        assert view.teams.data == []
        assert _messages(notifications) == [("success", 'Team "Sharks" deleted successfully')]

    @pytest.mark.asyncio
    async def test_delete_missing_team(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)

        assert await view.delete_team("missing", "Ghost") is False
        assert _messages(notifications) == [("error", "Failed to delete team")]

    @pytest.mark.asyncio
    async def test_create_with_admins_assigns_and_invites(self, test_db, notifications):
        root = make_user(test_db, "root@club.test", is_super_admin=True)
        make_user(test_db, "coach@club.test")
        view = TeamManagementView(test_db, notifications, current_user_id=root.user_id)
        view.new_team_name = "Thunder"

        with patch.object(view, "load", new_callable=AsyncMock) as load:
            result = await view.create_team_with_admins(["coach@club.test", "new@club.test"])

        load.assert_awaited_once()
        assert result.assigned_count == 2
        assert result.results[1].invite_code
        assert view.new_team_name == ""
        assert _messages(notifications) == [("success", 'Team "Thunder" created with 2 admin(s) assigned!')]

    @pytest.mark.asyncio
    async def test_create_without_admins_issues_no_request(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)

        with patch.object(view.onboarding, "create_team_with_admins", new_callable=AsyncMock) as create, patch.object(view, "load", new_callable=AsyncMock) as load:
            assert await view.create_team_with_admins([], name="Thunder") is None

        create.assert_not_called()
        load.assert_not_called()
        assert _messages(notifications) == [("error", "At least one administrator must be assigned")]

    @pytest.mark.asyncio
    async def test_create_with_rejected_address(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)

        assert await view.create_team_with_admins(["coach"], name="Thunder") is None
        assert _messages(notifications) == [("error", "A valid email address is required")]

    @pytest.mark.asyncio
    async def test_create_with_no_successful_assignment(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)

        with patch.object(view.onboarding.invitations, "create_admin_invitation", new_callable=AsyncMock, side_effect=OperationalError("INSERT", {}, Exception("down"))):
            result = await view.create_team_with_admins(["new@club.test"], name="Thunder")

        assert result.assigned_count == 0
        assert [t.name for t in view.teams.data] == ["Thunder"]
        assert _messages(notifications) == [("error", "Team created but no admins were assigned successfully")]

    @pytest.mark.asyncio
    async def test_create_with_admins_insert_failure(self, test_db, notifications):
        view = TeamManagementView(test_db, notifications)
        view.new_team_name = "Thunder"

        with patch.object(view.onboarding.teams, "create_team", new_callable=AsyncMock, side_effect=OperationalError("INSERT", {}, Exception("down"))):
            assert await view.create_team_with_admins(["coach@club.test"]) is None

        assert view.new_team_name == "Thunder"
        assert _messages(notifications) == [("error", "Failed to finalize team creation")]


class TestUserManagementView:
    @pytest.mark.asyncio
    async def test_each_toggle_reloads_once(self, test_db, notifications):
        user = make_user(test_db, "coach@club.test")
        view = UserManagementView(test_db, notifications)

        with patch.object(view.service, "list_users_with_team_counts", wraps=view.service.list_users_with_team_counts) as listing:
            assert await view.toggle_super_admin(user.user_id) is True
            assert listing.await_count == 1
            assert await view.toggle_super_admin(user.user_id) is False
            assert listing.await_count == 2

        assert test_db.get(UserProfile, user.user_id).is_super_admin is False
        assert view.users.data[0].is_super_admin is False
        assert _messages(notifications) == [("success", "Super admin access granted"), ("success", "Super admin access revoked")]

    @pytest.mark.asyncio
    async def test_toggle_missing_user(self, test_db, notifications):
        view = UserManagementView(test_db, notifications)
        with patch.object(view, "load", new_callable=AsyncMock) as load:
            assert await view.toggle_super_admin("missing") is None

        load.assert_not_called()
        assert notifications.history[0].level.value == "error"

    @pytest.mark.asyncio
    async def test_toggle_failure(self, test_db, notifications):
        view = UserManagementView(test_db, notifications)
        with patch.object(view.service, "toggle_super_admin", new_callable=AsyncMock, side_effect=OperationalError("UPDATE", {}, Exception("down"))):
            assert await view.toggle_super_admin("u-1") is None

        assert _messages(notifications) == [("error", "Failed to update super admin status")]

    @pytest.mark.asyncio
    async def test_search(self, test_db, notifications):
        make_user(test_db, "ana@club.test", full_name="Ana")
        make_user(test_db, "ben@club.test", full_name="Ben")
        view = UserManagementView(test_db, notifications)

        state = await view.set_search("  ben ")

        assert view.search == "ben"
        assert [u.email for u in state.data] == ["ben@club.test"]

    @pytest.mark.asyncio
    async def test_load_failure_notifies(self, test_db, notifications):
        view = UserManagementView(test_db, notifications)
        with patch.object(view.service, "list_users_with_team_counts", new_callable=AsyncMock, side_effect=OperationalError("SELECT", {}, Exception("down"))):
            state = await view.load()

        assert state.is_error
        assert _messages(notifications) == [("error", "Failed to load users")]


class TestPlatformAnalyticsView:
    @pytest.mark.asyncio
    async def test_load(self, test_db, notifications):
        make_user(test_db, "root@club.test", is_super_admin=True)
        team = make_team(test_db, "Thunder")
        add_serve(test_db, team, "ace")

        state = await PlatformAnalyticsView(test_db, notifications).load()

        assert state.data.total_users == 1
        assert state.data.total_super_admins == 1
        assert state.data.total_teams == 1
        assert state.data.total_serves == 1

    @pytest.mark.asyncio
    async def test_load_failure(self, test_db, notifications):
        view = PlatformAnalyticsView(test_db, notifications)
        with patch.object(view.service, "get_platform_stats", new_callable=AsyncMock, side_effect=OperationalError("SELECT", {}, Exception("down"))):
            state = await view.load()

        assert state.is_error
        assert _messages(notifications) == [("error", "Failed to load analytics")]
