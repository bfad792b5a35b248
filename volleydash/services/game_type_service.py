# -*- coding: utf-8 -*-
"""Location: ./volleydash/services/game_type_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Game Type Service.
This module manages the game types a team can schedule game days with. Every
team has the built-in types; team administrators add, rename and delete their
own. Listings report how many game days use each abbreviation.

Examples:
    >>> [t.abbreviation for t in DEFAULT_GAME_TYPES]
    ['TRN', 'FRI', 'TOU']
"""

# Standard
from typing import Dict

# Third-Party
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

# First-Party
from volleydash.db import CustomGameType, GameDay, Team
from volleydash.schemas import GameTypeCatalog, GameTypeInput, GameTypeRead
from volleydash.services.logging_service import LoggingService
from volleydash.services.team_management_service import TeamNotFoundError, validation_message

# Initialize logging
logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

DEFAULT_GAME_TYPES = (
    GameTypeRead(name="Training", abbreviation="TRN", is_default=True),
    GameTypeRead(name="Friendly Match", abbreviation="FRI", is_default=True),
    GameTypeRead(name="Tournament", abbreviation="TOU", is_default=True),
)


class GameTypeError(Exception):
    """Base class for game type errors.

    Examples:
        >>> str(GameTypeError("boom"))
        'boom'
    """


class GameTypeNotFoundError(GameTypeError):
    """Raised when a custom game type does not exist."""


class GameTypeValidationError(GameTypeError):
    """Raised when game type input is rejected before any request is issued.

    Examples:
        >>> isinstance(GameTypeValidationError("Please fill in all fields"), GameTypeError)
        True
    """


def _validate(name: str, abbreviation: str) -> GameTypeInput:
    """Validate game type input.

    Args:
        name: Raw name
        abbreviation: Raw abbreviation

    Returns:
        GameTypeInput: Trimmed name and upper-cased abbreviation

    Raises:
        GameTypeValidationError: If a field is blank or too long

    Examples:
        >>> _validate(" Beach ", "bch").abbreviation
        'BCH'
        >>> try:
        ...     _validate("Beach", "  ")
        ... except GameTypeValidationError as e:
        ...     print(e)
        Please fill in all fields
    """
    try:
        return GameTypeInput(name=name, abbreviation=abbreviation)
    except ValidationError as e:
        raise GameTypeValidationError(validation_message(e)) from e


# pylint: disable=not-callable
# SQLAlchemy's func.count() is callable at runtime but pylint cannot detect this
class GameTypeService:
    """Service for listing and editing a team's game types.

    Attributes:
        db (Session): SQLAlchemy database session
    """

    def __init__(self, db: Session):
        """Initialize service with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    async def list_game_types(self, team_id: str) -> GameTypeCatalog:
        """List the built-in and custom game types of a team with usage counts.

        Custom types are listed newest first. Usage comes from one grouped
        count over the team's game days.

        Args:
            team_id: Team to list

        Returns:
            GameTypeCatalog: Built-in and custom types

        Raises:
            Exception: If the read fails
        """
        custom_stmt = select(CustomGameType).where(CustomGameType.team_id == team_id).order_by(CustomGameType.created_at.desc())
        usage_stmt = select(GameDay.game_type, func.count(GameDay.id)).where(GameDay.team_id == team_id).group_by(GameDay.game_type)
        try:
            usage: Dict[str, int] = {game_type: count for game_type, count in self.db.execute(usage_stmt).all()}
            custom = [GameTypeRead.model_validate(game_type).model_copy(update={"usage_count": usage.get(game_type.abbreviation, 0)}) for game_type in self.db.execute(custom_stmt).scalars().all()]
            self.db.commit()  # Release transaction to avoid idle-in-transaction
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to list game types of team {team_id}: {e}")
            raise

        defaults = [game_type.model_copy(update={"usage_count": usage.get(game_type.abbreviation, 0)}) for game_type in DEFAULT_GAME_TYPES]
        return GameTypeCatalog(defaults=defaults, custom=custom)

    async def create_game_type(self, team_id: str, name: str, abbreviation: str) -> CustomGameType:
        """Add a custom game type to a team.

        Args:
            team_id: Team to add to
            name: Display name, at most 50 characters
            abbreviation: Short code, at most 10 characters, stored upper-case

        Returns:
            CustomGameType: The created type

        Raises:
            GameTypeValidationError: If a field is blank or too long (no query is issued)
            TeamNotFoundError: If the team does not exist
            Exception: If the insert fails

        Examples:
            >>> import asyncio
            >>> from unittest.mock import Mock
            >>> db = Mock()
            >>> try:
            ...     asyncio.run(GameTypeService(db).create_game_type("t-1", "", "CHA"))
            ... except GameTypeValidationError as e:
            ...     print(e)
            Please fill in all fields
            >>> db.add.called
            False
        """
        payload = _validate(name, abbreviation)
        try:
            if self.db.get(Team, team_id) is None:
                logger.warning(f"Team {team_id} not found for game type creation")
                raise TeamNotFoundError(f"Team not found: {team_id}")
            game_type = CustomGameType(team_id=team_id, name=payload.name, abbreviation=payload.abbreviation)
            self.db.add(game_type)
            self.db.commit()
            self.db.refresh(game_type)
        except TeamNotFoundError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create game type {payload.abbreviation} for team {team_id}: {e}")
            raise

        logger.info(f"Created game type {game_type.abbreviation} for team {team_id}")
        return game_type

    async def update_game_type(self, game_type_id: str, name: str, abbreviation: str) -> CustomGameType:
        """Rename a custom game type.

        Args:
            game_type_id: Type to update
            name: New display name
            abbreviation: New short code

        Returns:
            CustomGameType: The updated type

        Raises:
            GameTypeValidationError: If a field is blank or too long
            GameTypeNotFoundError: If the type does not exist
            Exception: If the update fails
        """
        payload = _validate(name, abbreviation)
        try:
            game_type = self.db.get(CustomGameType, game_type_id)
            if game_type is None:
                raise GameTypeNotFoundError(f"Game type not found: {game_type_id}")
            game_type.name = payload.name
            game_type.abbreviation = payload.abbreviation
            self.db.commit()
            self.db.refresh(game_type)
        except GameTypeNotFoundError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update game type {game_type_id}: {e}")
            raise

        logger.info(f"Updated game type {game_type_id} to {payload.abbreviation}")
        return game_type

    async def delete_game_type(self, game_type_id: str) -> bool:
        """Delete a custom game type.

        Game days keep their abbreviation.

        Args:
            game_type_id: Type to delete

        Returns:
            bool: True once deleted

        Raises:
            GameTypeNotFoundError: If the type does not exist
            Exception: If the delete fails
        """
        try:
            game_type = self.db.get(CustomGameType, game_type_id)
            if game_type is None:
                raise GameTypeNotFoundError(f"Game type not found: {game_type_id}")
            self.db.delete(game_type)
            self.db.commit()
        except GameTypeNotFoundError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to delete game type {game_type_id}: {e}")
            raise

        logger.info(f"Deleted game type {game_type_id}")
        return True
