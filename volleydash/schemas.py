# -*- coding: utf-8 -*-
"""Location: ./volleydash/schemas.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Pydantic Schemas.
View models returned by the admin services and input models validated before
any mutation is issued.

The schemas cover:
- Users, teams and memberships with derived counts
- Activity records with typed detail payloads
- Team and platform statistics
- Invitations and invite-code validation results
- Team creation with administrators, custom game types and data resets
"""

# Standard
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

# Third-Party
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MemberRole(str, Enum):
    """Roles a team membership can hold."""

    ADMIN = "admin"
    MEMBER = "member"


class ActivityAction(str, Enum):
    """Audit actions with a dedicated description."""

    ROLE_CHANGED = "role_changed"
    MEMBER_REMOVED = "member_removed"
    INVITATION_SENT = "invitation_sent"


class InvitationType(str, Enum):
    """Kinds of team invitation."""

    ADMIN = "admin"
    MEMBER = "member"


# ---------------------------------------------------------------------------
# Activity detail payloads
# ---------------------------------------------------------------------------


class RoleChangedDetails(BaseModel):
    """Payload of a ``role_changed`` audit entry."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["role_changed"] = "role_changed"
    member_email: Optional[str] = None
    old_role: Optional[str] = None
    new_role: Optional[str] = None


class MemberRemovedDetails(BaseModel):
    """Payload of a ``member_removed`` audit entry."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["member_removed"] = "member_removed"
    member_email: Optional[str] = None
    member_role: Optional[str] = None


class InvitationSentDetails(BaseModel):
    """Payload of an ``invitation_sent`` audit entry."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    action: Literal["invitation_sent"] = "invitation_sent"
    invited_email: Optional[str] = None


class GenericDetails(BaseModel):
    """Payload of any other audit action, kept as an untyped mapping."""

    model_config = ConfigDict(frozen=True)

    action: str
    payload: Dict[str, Any] = Field(default_factory=dict)


ActivityDetails = Union[RoleChangedDetails, MemberRemovedDetails, InvitationSentDetails, GenericDetails]


# ---------------------------------------------------------------------------
# Users and teams
# ---------------------------------------------------------------------------


class UserProfileRead(BaseModel):
    """User profile as listed to super admins."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    full_name: Optional[str] = None
    is_super_admin: bool = False
    created_at: datetime


class UserWithTeamCounts(UserProfileRead):
    """User profile with derived membership counts."""

    team_count: int = 0
    admin_team_count: int = 0


class TeamRead(BaseModel):
    """Team details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None


class TeamWithCounts(TeamRead):
    """Team with derived membership counts."""

    member_count: int = 0
    admin_count: int = 0


class TeamMemberRead(BaseModel):
    """Membership row joined with the member's profile."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    team_id: str
    user_id: str
    role: str
    joined_at: datetime
    email: Optional[str] = None
    full_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Return the best available name for the member.

        Returns:
            str: Full name, e-mail, or the user id

        Examples:
            >>> from datetime import timezone
            >>> m = TeamMemberRead(id="m", team_id="t", user_id="u-1", role="member", joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
            >>> m.display_name
            'u-1'
        """
        return self.full_name or self.email or self.user_id


class TeamCreate(BaseModel):
    """Input for creating a team.

    Examples:
        >>> TeamCreate(name="  Thunder ").name
        'Thunder'
        >>> try:
        ...     TeamCreate(name="   ")
        ... except ValueError as e:
        ...     "Team name is required" in str(e)
        True
    """

    name: str = Field(..., max_length=255)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Trim the name and require it to be non-empty.

        Args:
            value: Raw team name

        Returns:
            str: Trimmed name

        Raises:
            ValueError: If the trimmed name is empty
        """
        name = value.strip()
        if not name:
            raise ValueError("Team name is required")
        return name

    @field_validator("description")
    @classmethod
    def blank_description_to_none(cls, value: Optional[str]) -> Optional[str]:
        """Store blank descriptions as ``None``.

        Args:
            value: Raw description

        Returns:
            Optional[str]: Trimmed description or None
        """
        if value is None:
            return None
        return value.strip() or None


class TeamSettingsUpdate(TeamCreate):
    """Input for updating team settings."""

    logo_url: Optional[str] = Field(default=None, max_length=767)


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


class ActivityRecord(BaseModel):
    """Audit entry with its actor resolved and description rendered."""

    model_config = ConfigDict(frozen=True)

    id: str
    team_id: Optional[str] = None
    action: str
    details: ActivityDetails
    performed_by: Optional[str] = None
    actor_name: str
    actor_email: Optional[str] = None
    created_at: datetime
    description: str
    label: str
    severity: str
    summary: Optional[str] = None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class TeamStats(BaseModel):
    """Per-team statistics recomputed on every load."""

    total_members: int = 0
    admin_count: int = 0
    member_count: int = 0
    other_role_count: int = 0
    recent_activity_count: int = 0
    total_serves: int = 0
    total_aces: int = 0
    total_fails: int = 0
    last_activity_at: Optional[datetime] = None


class PlatformStats(BaseModel):
    """Platform-wide statistics for super admins."""

    total_users: int = 0
    total_teams: int = 0
    total_super_admins: int = 0
    total_serves: int = 0
    recent_signups: int = 0


class TeamOverview(BaseModel):
    """Team details, statistics and latest activity shown on the overview tab."""

    team: TeamRead
    stats: TeamStats
    recent_activity: list[ActivityRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


def normalize_email(value: str) -> str:
    """Trim and lower-case an e-mail address and require a plausible shape.

    Args:
        value: Raw e-mail address

    Returns:
        str: Normalized address

    Raises:
        ValueError: If the address is empty or malformed

    Examples:
        >>> normalize_email(" Setter@Club.TEST ")
        'setter@club.test'
        >>> normalize_email("setter")
        Traceback (most recent call last):
        ...
        ValueError: A valid email address is required
    """
    email = value.strip().lower()
    local, _, domain = email.partition("@")
    if not local or not domain or " " in email:
        raise ValueError("A valid email address is required")
    return email


class InvitationRead(BaseModel):
    """Team invitation."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    team_id: str
    invite_code: str
    invitation_type: str
    invited_email: Optional[str] = None
    admin_role: bool = False
    created_by: Optional[str] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
    max_uses: Optional[int] = None
    current_uses: int = 0
    is_active: bool = True


class AdminInvitationCreate(BaseModel):
    """Input for inviting an administrator by e-mail.

    Examples:
        >>> AdminInvitationCreate(email=" Coach@Club.test ").email
        'coach@club.test'
    """

    email: str = Field(..., max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        """Normalize the address and require a plausible shape.

        Args:
            value: Raw e-mail address

        Returns:
            str: Lower-cased, trimmed address

        Raises:
            ValueError: If the address is empty or malformed
        """
        return normalize_email(value)


class InviteValidation(BaseModel):
    """Result of checking an invite code."""

    is_valid: bool
    invitation_id: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    admin_role: bool = False
    invitation_type: Optional[str] = None
    invited_email: Optional[str] = None
    error_message: Optional[str] = None


# ---------------------------------------------------------------------------
# Team creation with administrators
# ---------------------------------------------------------------------------


class TeamCreateWithAdmins(TeamCreate):
    """Input for creating a team together with its administrators.

    Examples:
        >>> TeamCreateWithAdmins(name="Thunder", admin_emails=[" Ana@Club.test", "ben@club.test"]).admin_emails
        ['ana@club.test', 'ben@club.test']
        >>> try:
        ...     TeamCreateWithAdmins(name="Thunder", admin_emails=[])
        ... except ValueError as e:
        ...     "At least one administrator must be assigned" in str(e)
        True
    """

    admin_emails: List[str] = Field(default_factory=list)

    @field_validator("admin_emails")
    @classmethod
    def validate_admin_emails(cls, value: List[str]) -> List[str]:
        """Normalize every address, then reject empty and duplicate lists.

        Args:
            value: Raw e-mail addresses

        Returns:
            List[str]: Normalized addresses in input order

        Raises:
            ValueError: If no address is given, one is malformed, or one repeats
        """
        if not value:
            raise ValueError("At least one administrator must be assigned")
        emails: List[str] = []
        for raw in value:
            email = normalize_email(raw)
            if email in emails:
                raise ValueError("This email has already been added")
            emails.append(email)
        return emails


class AdminAssignmentResult(BaseModel):
    """Outcome of assigning one administrator to a new team."""

    email: str
    success: bool
    message: str
    invite_code: Optional[str] = None


class TeamCreationResult(BaseModel):
    """A created team and the outcome of each administrator assignment."""

    team: TeamRead
    results: List[AdminAssignmentResult] = Field(default_factory=list)

    @property
    def assigned_count(self) -> int:
        """Count the assignments that succeeded.

        Returns:
            int: Successful assignments, direct or by invitation
        """
        return sum(1 for result in self.results if result.success)


# ---------------------------------------------------------------------------
# Game types
# ---------------------------------------------------------------------------


class GameTypeInput(BaseModel):
    """Input for creating or renaming a custom game type.

    Examples:
        >>> GameTypeInput(name=" Championship ", abbreviation=" cha ").abbreviation
        'CHA'
    """

    name: str = Field(..., max_length=50)
    abbreviation: str = Field(..., max_length=10)

    @field_validator("name", "abbreviation", mode="before")
    @classmethod
    def require_value(cls, value: Any) -> Any:
        """Trim both fields and require them to be non-empty.

        Args:
            value: Raw field value

        Returns:
            Any: Trimmed value

        Raises:
            ValueError: If the trimmed value is empty
        """
        if isinstance(value, str):
            value = value.strip()
        if not value:
            raise ValueError("Please fill in all fields")
        return value

    @field_validator("abbreviation")
    @classmethod
    def upper_abbreviation(cls, value: str) -> str:
        """Store abbreviations in upper case.

        Args:
            value: Trimmed abbreviation

        Returns:
            str: Upper-cased abbreviation
        """
        return value.upper()


class GameTypeRead(BaseModel):
    """Game type with the number of game days that use it."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    team_id: Optional[str] = None
    name: str
    abbreviation: str
    created_at: Optional[datetime] = None
    is_default: bool = False
    usage_count: int = 0


class GameTypeCatalog(BaseModel):
    """Built-in and team-defined game types of a team."""

    defaults: List[GameTypeRead] = Field(default_factory=list)
    custom: List[GameTypeRead] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Team data reset
# ---------------------------------------------------------------------------


class TeamDataResetResult(BaseModel):
    """Rows affected by a team data reset."""

    preserve_players: bool
    serves_deleted: int = 0
    game_days_deleted: int = 0
    players_deleted: int = 0
    players_reset: int = 0
