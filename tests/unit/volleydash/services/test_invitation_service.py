# -*- coding: utf-8 -*-
"""Location: ./tests/unit/volleydash/services/test_invitation_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Tests for invite code creation, validation and acceptance.
"""

# Standard
from datetime import timedelta, timezone
from unittest.mock import MagicMock

# Third-Party
import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

# First-Party
from tests.helpers.factories import add_member, make_invitation, make_team, make_user
from volleydash.db import TeamActivityAudit, TeamInvitation, TeamMember, utc_now
from volleydash.services.invitation_service import (
    AlreadyTeamMemberError,
    check_invitation,
    generate_invite_code,
    INVITE_CODE_ALPHABET,
    InvalidInvitationError,
    InvitationNotFoundError,
    InvitationService,
)
from volleydash.services.team_management_service import TeamNotFoundError


@pytest.fixture
def service(test_db):
    return InvitationService(test_db)


def _actions(db, team_id):
    return [entry.action for entry in db.execute(select(TeamActivityAudit).where(TeamActivityAudit.team_id == team_id)).scalars()]


class TestInviteCodes:
    def test_default_length_and_alphabet(self):
        code = generate_invite_code()
        assert len(code) == 8
        assert set(code) <= set(INVITE_CODE_ALPHABET)

    def test_explicit_length_wins_over_default(self):
        assert generate_invite_code(0) == ""
        assert len(generate_invite_code(12)) == 12

    def test_expired(self):
        invitation = TeamInvitation(is_active=True, current_uses=0, expires_at=utc_now() - timedelta(seconds=1))
        assert check_invitation(invitation) == "This invite code has expired"

    def test_naive_expiry_is_utc(self):
        future = (utc_now() + timedelta(hours=1)).astimezone(timezone.utc).replace(tzinfo=None)
        assert check_invitation(TeamInvitation(is_active=True, current_uses=0, expires_at=future)) is None


class TestCreateInvitations:
    @pytest.mark.asyncio
    async def test_member_invitation(self, service, test_db):
        team = make_team(test_db, "Thunder")

        invitation = await service.create_member_invitation(team.id, created_by="u-1")

        assert invitation.invitation_type == "member"
        assert invitation.admin_role is False
        assert invitation.max_uses == 10
        assert invitation.is_active is True
        assert timedelta(days=6, hours=23) < invitation.expires_at - utc_now() <= timedelta(days=7)
        assert _actions(test_db, team.id) == []

    @pytest.mark.asyncio
    async def test_admin_invitation_records_activity(self, service, test_db):
        admin = make_user(test_db, "admin@club.test")
        team = make_team(test_db, "Thunder")

        invitation = await service.create_admin_invitation(team.id, " Setter@Club.test ", created_by=admin.user_id)

        assert invitation.invitation_type == "admin"
        assert invitation.invited_email == "setter@club.test"
        assert invitation.admin_role is True
        assert invitation.max_uses == 1
        entry = test_db.execute(select(TeamActivityAudit).where(TeamActivityAudit.team_id == team.id)).scalar_one()
        assert entry.action == "invitation_sent"
        assert entry.details == {"invited_email": "setter@club.test"}

    @pytest.mark.asyncio
    async def test_invalid_email_issues_no_request(self):
        db = MagicMock(spec=Session)
        with pytest.raises(InvalidInvitationError):
            await InvitationService(db).create_admin_invitation("t-1", "   ")
        db.get.assert_not_called()
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_team(self, service):
        with pytest.raises(TeamNotFoundError):
            await service.create_member_invitation("missing")


class TestListAndDeactivate:
    @pytest.mark.asyncio
    async def test_lists_only_active(self, service, test_db):
        team = make_team(test_db, "Thunder")
        make_invitation(test_db, team, "ACTIVE01", created_at=utc_now() - timedelta(hours=2))
        make_invitation(test_db, team, "ACTIVE02", created_at=utc_now() - timedelta(hours=1))
        make_invitation(test_db, team, "CLOSED01", is_active=False)

        invitations = await service.list_active_invitations(team.id)

        assert [inv.invite_code for inv in invitations] == ["ACTIVE02", "ACTIVE01"]

    @pytest.mark.asyncio
    async def test_active_invite_code_skips_expired_and_admin(self, service, test_db):
        team = make_team(test_db, "Thunder")
        make_invitation(test_db, team, "OLDCODE1", expires_at=utc_now() - timedelta(days=1))
        make_invitation(test_db, team, "ADMINONE", invitation_type="admin", admin_role=True)
        make_invitation(test_db, team, "GOODCODE", created_at=utc_now() - timedelta(days=1))

        assert await service.get_active_invite_code(team.id) == "GOODCODE"
        assert await service.get_active_invite_code("missing") is None

    @pytest.mark.asyncio
    async def test_deactivate(self, service, test_db):
        team = make_team(test_db, "Thunder")
        invitation = make_invitation(test_db, team, "ABCD1234")

        assert await service.deactivate_invitation(invitation.id) is True
        assert test_db.get(TeamInvitation, invitation.id).is_active is False

        with pytest.raises(InvitationNotFoundError):
            await service.deactivate_invitation("missing")


class TestValidateAndAccept:
    @pytest.mark.asyncio
    async def test_validate_normalizes_code(self, service, test_db):
        team = make_team(test_db, "Thunder")
        make_invitation(test_db, team, "ABCD1234")

        result = await service.validate_invite_code("  abcd1234 ")

        assert result.is_valid is True
        assert result.team_name == "Thunder"
        assert result.admin_role is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"is_active": False}, "This invite code is no longer active"),
            ({"current_uses": 10}, "This invite code has reached its maximum uses"),
        ],
    )
    async def test_validate_rejections(self, service, test_db, overrides, message):
        team = make_team(test_db, "Thunder")
        make_invitation(test_db, team, "ABCD1234", **overrides)

        result = await service.validate_invite_code("ABCD1234")

        assert result.is_valid is False
        assert result.error_message == message

    @pytest.mark.asyncio
    async def test_validate_expired_and_unknown(self, service, test_db):
        team = make_team(test_db, "Thunder")
        make_invitation(test_db, team, "EXPIRED1", expires_at=utc_now() - timedelta(minutes=1))

        assert (await service.validate_invite_code("EXPIRED1")).error_message == "This invite code has expired"
        assert (await service.validate_invite_code("NOPE")).error_message == "Invalid invite code"
        assert (await service.validate_invite_code("")).error_message == "Invalid invite code"

    @pytest.mark.asyncio
    async def test_accept_member_invitation(self, service, test_db):
        team = make_team(test_db, "Thunder")
        user = make_user(test_db, "new@club.test")
        invitation = make_invitation(test_db, team, "ABCD1234")

        membership = await service.accept_invitation("abcd1234", user.user_id)

        assert membership.role == "member"
        assert membership.team_id == team.id
        refreshed = test_db.get(TeamInvitation, invitation.id)
        assert refreshed.current_uses == 1
        assert refreshed.is_active is True
        assert refreshed.last_used_at is not None
        assert _actions(test_db, team.id) == ["member_added"]

    @pytest.mark.asyncio
    async def test_accept_admin_invitation_closes_it(self, service, test_db):
        team = make_team(test_db, "Thunder")
        user = make_user(test_db, "coach@club.test")
        invitation = make_invitation(test_db, team, "ADMIN123", invitation_type="admin", admin_role=True, max_uses=1, invited_email="coach@club.test")

        membership = await service.accept_invitation("ADMIN123", user.user_id)

        assert membership.role == "admin"
        refreshed = test_db.get(TeamInvitation, invitation.id)
        assert refreshed.is_active is False
        assert refreshed.accepted_by == user.user_id
        assert refreshed.accepted_at is not None

    @pytest.mark.asyncio
    async def test_accept_rejects_existing_member(self, service, test_db):
        team = make_team(test_db, "Thunder")
        user = make_user(test_db, "old@club.test")
        add_member(test_db, team, user)
        invitation = make_invitation(test_db, team, "ABCD1234")

        with pytest.raises(AlreadyTeamMemberError):
            await service.accept_invitation("ABCD1234", user.user_id)

        assert test_db.get(TeamInvitation, invitation.id).current_uses == 0
        assert len(test_db.execute(select(TeamMember).where(TeamMember.team_id == team.id)).all()) == 1

    @pytest.mark.asyncio
    async def test_accept_rejects_unusable_code(self, service, test_db):
        team = make_team(test_db, "Thunder")
        user = make_user(test_db, "new@club.test")
        make_invitation(test_db, team, "ABCD1234", is_active=False)

        with pytest.raises(InvalidInvitationError, match="no longer active"):
            await service.accept_invitation("ABCD1234", user.user_id)
