# -*- coding: utf-8 -*-
"""Location: ./tests/unit/volleydash/services/test_user_management_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tests for user listing with team counts and the super-admin toggle.
"""

# Standard
from datetime import timedelta
from unittest.mock import MagicMock, patch

# Third-Party
import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

# First-Party
from tests.helpers.factories import add_member, make_team, make_user
from volleydash.config import settings
from volleydash.db import UserProfile, utc_now
from volleydash.services.user_management_service import UserManagementService, UserNotFoundError, ZERO_COUNTS


@pytest.fixture
def service(test_db):
    return UserManagementService(test_db)


@pytest.fixture
def roster(test_db):
    """Three users across two teams, newest signup first."""
    now = utc_now()
    ana = make_user(test_db, "ana@club.test", full_name="Ana Admin", created_at=now - timedelta(days=1))
    ben = make_user(test_db, "ben@club.test", full_name="Ben Blocker", created_at=now - timedelta(days=2))
    cy = make_user(test_db, "cy@club.test", created_at=now - timedelta(days=3))
    thunder = make_team(test_db, "Thunder")
    sharks = make_team(test_db, "Sharks")
    add_member(test_db, thunder, ana, role="admin")
    add_member(test_db, sharks, ana, role="admin")
    add_member(test_db, thunder, ben)
    add_member(test_db, sharks, ben, role="admin")
    return ana, ben, cy


class TestListUsers:
    @pytest.mark.asyncio
    async def test_counts_per_user(self, service, roster):
        ana, ben, cy = roster

        users = await service.list_users_with_team_counts()

        assert [u.user_id for u in users] == [ana.user_id, ben.user_id, cy.user_id]
        counts = {u.email: (u.team_count, u.admin_team_count) for u in users}
        assert counts == {"ana@club.test": (2, 2), "ben@club.test": (2, 1), "cy@club.test": (0, 0)}

    @pytest.mark.asyncio
    async def test_search(self, service, roster):
        assert [u.email for u in await service.list_users_with_team_counts(search="BLOCKER")] == ["ben@club.test"]
        assert [u.email for u in await service.list_users_with_team_counts(search="cy@")] == ["cy@club.test"]
        assert len(await service.list_users_with_team_counts(search="  ")) == 3

    @pytest.mark.asyncio
    async def test_search_wildcards_match_literally(self, service, test_db, roster):
        make_user(test_db, "mid_blocker@club.test", full_name="100% Effort")

        assert [u.email for u in await service.list_users_with_team_counts(search="_")] == ["mid_blocker@club.test"]
        assert [u.email for u in await service.list_users_with_team_counts(search="%")] == ["mid_blocker@club.test"]

    @pytest.mark.asyncio
    async def test_empty_platform(self, service):
        assert await service.list_users_with_team_counts() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_count", [1, 5, 25])
    async def test_query_count_does_not_grow_with_users(self, service, test_db, assert_max_queries, user_count):
        team = make_team(test_db, "Thunder")
        for i in range(user_count):
            add_member(test_db, team, make_user(test_db, f"u{i}@club.test"))

        with assert_max_queries(2):
            users = await service.list_users_with_team_counts()

        assert len(users) == user_count
        assert all(u.team_count == 1 for u in users)

    @pytest.mark.asyncio
    async def test_profile_read_failure_propagates(self):
        db = MagicMock(spec=Session)
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(OperationalError):
            await UserManagementService(db).list_users_with_team_counts()
        db.rollback.assert_called_once()


class TestPartialDegradation:
    @pytest.mark.asyncio
    async def test_one_failing_lookup_zeroes_only_that_user(self, service, roster):
        ana, ben, cy = roster
        real_count = service._count_user_teams  # pylint: disable=protected-access

        def flaky_count(user_id):
            if user_id == ben.user_id:
                raise OperationalError("SELECT", {}, Exception("timeout"))
            return real_count(user_id)

        with patch.object(service, "_count_teams_batch", side_effect=OperationalError("SELECT", {}, Exception("down"))), patch.object(service, "_count_user_teams", side_effect=flaky_count):
            users = await service.list_users_with_team_counts()

        counts = {u.email: (u.team_count, u.admin_team_count) for u in users}
        assert len(users) == 3
        assert counts["ana@club.test"] == (2, 2)
        assert counts["ben@club.test"] == ZERO_COUNTS
        assert counts["cy@club.test"] == (0, 0)

    def test_fallback_disabled_zeroes_everyone(self, service, roster):
        ana, ben, _ = roster
        with patch.object(service, "_count_teams_batch", side_effect=OperationalError("SELECT", {}, Exception("down"))), patch.object(
            settings, "membership_count_fallback_enabled", False
        ):
            counts = service.get_team_counts([ana.user_id, ben.user_id])

        assert counts == {ana.user_id: ZERO_COUNTS, ben.user_id: ZERO_COUNTS}

    def test_batch_used_when_available(self, service, roster):
        ana, _, cy = roster
        with patch.object(service, "_count_user_teams") as per_user:
            counts = service.get_team_counts([ana.user_id, cy.user_id])

        per_user.assert_not_called()
        assert counts == {ana.user_id: (2, 2), cy.user_id: ZERO_COUNTS}


class TestToggleSuperAdmin:
    @pytest.mark.asyncio
    async def test_toggle_twice_restores_value(self, service, test_db):
        user = make_user(test_db, "root@club.test")
        user_id = user.user_id

        assert await service.toggle_super_admin(user_id) is True
        assert test_db.get(UserProfile, user_id).is_super_admin is True
        assert await service.toggle_super_admin(user_id) is False
        assert test_db.get(UserProfile, user_id).is_super_admin is False

    @pytest.mark.asyncio
    async def test_missing_user(self, service):
        with pytest.raises(UserNotFoundError):
            await service.toggle_super_admin("missing")

    @pytest.mark.asyncio
    async def test_update_failure_rolls_back(self):
        db = MagicMock(spec=Session)
        db.get.return_value = UserProfile(user_id="u-1", email="u@club.test", is_super_admin=False)
        db.commit.side_effect = OperationalError("UPDATE", {}, Exception("down"))

        with pytest.raises(OperationalError):
            await UserManagementService(db).toggle_super_admin("u-1")
        db.rollback.assert_called_once()
