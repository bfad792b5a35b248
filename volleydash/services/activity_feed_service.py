# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/activity_feed_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Team Activity Feed Service.
This module reads the append-only team activity audit, resolves the actor of
each entry and renders a human readable description for it. It also provides
the writer used by member and invitation mutations to append new entries.

Examples:
    >>> describe_activity("invitation_sent", {"invited_email": "setter@club.test"}, "Coach Kim")
    'Coach Kim sent an invitation to setter@club.test'
    >>> describe_activity("team_renamed", None, "System")
    'System performed team_renamed'
"""

# Standard
from typing import Any, Dict, List, Mapping, Optional, Union

# Third-Party
from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

# First-Party
from volleydash.config import settings
from volleydash.db import Team, TeamActivityAudit, UserProfile, utc_now
from volleydash.schemas import ActivityAction, ActivityDetails, ActivityRecord, GenericDetails, InvitationSentDetails, MemberRemovedDetails, RoleChangedDetails
from volleydash.services.logging_service import LoggingService

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

SYSTEM_ACTOR = "System"
UNKNOWN_VALUE = "unknown"

_DETAIL_MODELS = {
    ActivityAction.ROLE_CHANGED.value: RoleChangedDetails,
    ActivityAction.MEMBER_REMOVED.value: MemberRemovedDetails,
    ActivityAction.INVITATION_SENT.value: InvitationSentDetails,
}


def parse_activity_details(action: str, raw: Optional[Mapping[str, Any]]) -> ActivityDetails:
    """Convert a raw audit payload into the variant for its action.

    Known actions get their typed variant; a payload that does not validate
    yields the variant with every field unset. Any other action keeps its
    payload untyped in ``GenericDetails``.

    Args:
        action: Audit action tag
        raw: Stored JSON payload, may be None or not a mapping

    Returns:
        ActivityDetails: Typed detail variant

    Examples:
        >>> parse_activity_details("role_changed", {"member_email": "a@b.c", "old_role": "member", "new_role": "admin"}).new_role
        'admin'
        >>> parse_activity_details("member_removed", {"member_email": 42}).member_email is None
        True
        >>> parse_activity_details("settings_updated", {"count": 2})
        GenericDetails(action='settings_updated', payload={'count': 2})
    """
    payload: Dict[str, Any] = dict(raw) if isinstance(raw, Mapping) else {}
    model_cls = _DETAIL_MODELS.get(action)
    if model_cls is None:
        return GenericDetails(action=action, payload=payload)

    payload.pop("action", None)
    try:
        return model_cls(**payload)
    except ValidationError as e:
        logger.debug(f"Unreadable {action} payload, rendering with unknown fields: {e}")
        return model_cls()


def resolve_actor_name(full_name: Optional[str], email: Optional[str]) -> str:
    """Pick the display name of the actor behind an audit entry.

    Args:
        full_name: Actor's full name, if known
        email: Actor's e-mail, if known

    Returns:
        str: Full name, then e-mail, then ``"System"``

    Examples:
        >>> resolve_actor_name("Dana Setter", "dana@club.test")
        'Dana Setter'
        >>> resolve_actor_name(None, "dana@club.test")
        'dana@club.test'
        >>> resolve_actor_name(None, None)
        'System'
    """
    return full_name or email or SYSTEM_ACTOR


def describe_activity(action: str, details: Union[ActivityDetails, Mapping[str, Any], None], actor: str) -> str:
    """Render a sentence describing an audit entry.

    Args:
        action: Audit action tag
        details: Typed variant or raw payload
        actor: Resolved actor display name

    Returns:
        str: Human readable description; unknown actions use the fallback sentence

    Examples:
        >>> describe_activity("role_changed", {"member_email": "libero@club.test", "old_role": "member", "new_role": "admin"}, "Ana")
        "Ana changed libero@club.test's role from member to admin"
        >>> describe_activity("member_removed", {"member_email": "opp@club.test", "member_role": "member"}, "Ana")
        'Ana removed opp@club.test (member) from the team'
        >>> describe_activity("member_removed", {}, "Ana")
        'Ana removed unknown (unknown) from the team'
    """
    if not isinstance(details, BaseModel):
        details = parse_activity_details(action, details)

    def _value(value: Optional[str]) -> str:
        return value if value else UNKNOWN_VALUE

    if isinstance(details, RoleChangedDetails):
        return f"{actor} changed {_value(details.member_email)}'s role from {_value(details.old_role)} to {_value(details.new_role)}"
    if isinstance(details, MemberRemovedDetails):
        return f"{actor} removed {_value(details.member_email)} ({_value(details.member_role)}) from the team"
    if isinstance(details, InvitationSentDetails):
        return f"{actor} sent an invitation to {_value(details.invited_email)}"
    return f"{actor} performed {action}"


def format_action_label(action: str) -> str:
    """Turn an action tag into a title-cased label.

    Args:
        action: Audit action tag

    Returns:
        str: Label with underscores replaced by spaces

    Examples:
        >>> format_action_label("role_changed")
        'Role Changed'
        >>> format_action_label("invitation_sent")
        'Invitation Sent'
    """
    return " ".join(word[:1].upper() + word[1:] for word in action.replace("_", " ").split(" "))


def action_severity(action: str) -> str:
    """Classify an action for badge styling.

    Args:
        action: Audit action tag

    Returns:
        str: ``destructive``, ``default``, ``secondary`` or ``outline``

    Examples:
        >>> action_severity("member_removed")
        'destructive'
        >>> action_severity("member_added")
        'default'
        >>> action_severity("role_changed")
        'secondary'
        >>> action_severity("invitation_sent")
        'outline'
    """
    if "remove" in action or "delete" in action:
        return "destructive"
    if "create" in action or "add" in action:
        return "default"
    if "update" in action or "change" in action:
        return "secondary"
    return "outline"


def summarize_details(details: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Summarize bulk and settings-change payloads.

    Args:
        details: Raw audit payload

    Returns:
        Optional[str]: Short summary, or None when nothing applies

    Examples:
        >>> summarize_details({"count": 4})
        'Affected 4 items'
        >>> summarize_details({"old_values": {"name": "Sharks", "description": "a"}, "new_values": {"name": "Thunder", "description": "b"}})
        'Name: "Sharks" -> "Thunder", Description updated'
        >>> summarize_details(None) is None
        True
    """
    if not isinstance(details, Mapping):
        return None
    if details.get("count"):
        return f"Affected {details['count']} items"

    old_values = details.get("old_values")
    new_values = details.get("new_values")
    if isinstance(old_values, Mapping) and isinstance(new_values, Mapping):
        changes = []
        if old_values.get("name") != new_values.get("name"):
            changes.append(f'Name: "{old_values.get("name")}" -> "{new_values.get("name")}"')
        if old_values.get("description") != new_values.get("description"):
            changes.append("Description updated")
        return ", ".join(changes) or None
    return None


def record_activity(db: Session, team_id: Optional[str], action: str, details: Optional[Dict[str, Any]] = None, performed_by: Optional[str] = None) -> TeamActivityAudit:
    """Append an audit entry and touch the team's last activity time.

    The entry is added to the caller's transaction; the caller commits.

    Args:
        db: Database session
        team_id: Team the entry belongs to
        action: Audit action tag
        details: JSON payload
        performed_by: User id of the actor, None for system actions

    Returns:
        TeamActivityAudit: The pending audit row
    """
    now = utc_now()
    entry = TeamActivityAudit(team_id=team_id, action=action, details=details, performed_by=performed_by, created_at=now)
    db.add(entry)
    if team_id:
        team = db.get(Team, team_id)
        if team is not None:
            team.last_activity_at = now
    logger.debug(f"Recorded team activity {action} for team {team_id} by {performed_by or SYSTEM_ACTOR}")
    return entry


class ActivityFeedService:
    """Read the activity feed of a team.

    Examples:
        >>> from unittest.mock import MagicMock
        >>> service = ActivityFeedService(MagicMock())
        >>> import asyncio
        >>> asyncio.run(service.get_team_activity(None)) is None
        True
    """

    def __init__(self, db: Session):
        """Initialize the activity feed service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    async def get_team_activity(self, team_id: Optional[str], limit: Optional[int] = None) -> Optional[List[ActivityRecord]]:
        """Load the most recent audit entries of a team, newest first.

        Args:
            team_id: Team to load; the loader is disabled when empty
            limit: Maximum number of entries (defaults to ``settings.activity_feed_limit``)

        Returns:
            Optional[List[ActivityRecord]]: Entries with resolved actors, or None when
            disabled or when the read fails
        """
        if not team_id:
            return None

        if limit is None:
            limit = settings.activity_feed_limit
        stmt = (
            select(TeamActivityAudit, UserProfile)
            .outerjoin(UserProfile, UserProfile.user_id == TeamActivityAudit.performed_by)
            .where(TeamActivityAudit.team_id == team_id)
            .order_by(TeamActivityAudit.created_at.desc(), TeamActivityAudit.id.desc())
            .limit(limit)
        )
        try:
            rows = self.db.execute(stmt).all()
            records = [self._build_record(entry, profile) for entry, profile in rows]
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to load activity for team {team_id}: {e}")
            return None

        return records

    async def get_recent_activity(self, team_id: Optional[str], limit: Optional[int] = None) -> Optional[List[ActivityRecord]]:
        """Load the handful of entries shown on the team overview.

        Args:
            team_id: Team to load
            limit: Maximum number of entries (defaults to ``settings.overview_activity_limit``)

        Returns:
            Optional[List[ActivityRecord]]: Entries, or None when disabled or failed
        """
        return await self.get_team_activity(team_id, limit=settings.overview_activity_limit if limit is None else limit)

    @staticmethod
    def _build_record(entry: TeamActivityAudit, profile: Optional[UserProfile]) -> ActivityRecord:
        """Combine an audit row with its actor profile.

        Args:
            entry: Audit row
            profile: Actor profile, None when unresolved

        Returns:
            ActivityRecord: View model with description, label and severity
        """
        full_name = profile.full_name if profile is not None else None
        email = profile.email if profile is not None else None
        actor_name = resolve_actor_name(full_name, email)
        details = parse_activity_details(entry.action, entry.details)
        return ActivityRecord(
            id=entry.id,
            team_id=entry.team_id,
            action=entry.action,
            details=details,
            performed_by=entry.performed_by,
            actor_name=actor_name,
            actor_email=email,
            created_at=entry.created_at,
            description=describe_activity(entry.action, details, actor_name),
            label=format_action_label(entry.action),
            severity=action_severity(entry.action),
            summary=summarize_details(entry.details),
        )
