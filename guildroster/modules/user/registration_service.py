"""
User Registration Service
=========================

Purpose
-------
Syncs identities issued by the external identity provider into User rows.
The first login creates the user; later logins refresh the profile fields.

Domain
------
- Upsert keyed by external_id
- Uniqueness of email and contact across users
- User lookups by roster id or external id

Dependencies
------------
- ConfigManager: age and name bounds (through InputValidator)
- EventBus: user.registered / user.updated
- DatabaseService: transaction management
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from guildroster.core.database.service import DatabaseService
from guildroster.core.event import types as events
from guildroster.core.validation.input_validator import InputValidator
from guildroster.database.models.identity.user import User
from guildroster.modules.shared.base_repository import BaseRepository
from guildroster.modules.shared.base_service import BaseService
from guildroster.modules.shared.exceptions import (
    DuplicateIdentityError,
    UserNotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

    from guildroster.core.config.manager import ConfigManager
    from guildroster.core.event.bus import EventBus
    from guildroster.modules.user.identity import AuthenticatedUser


class UserRegistrationService(BaseService):
    """
    Service for identity sync.

    Public Methods
    --------------
    - register_identity() -> Create or refresh the User for an identity
    - get_user() -> User by roster id
    - get_user_by_external_id() -> User by identity provider id
    """

    _PROFILE_FIELDS: Tuple[str, ...] = ("name", "contact", "age", "email")

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._user_repo = BaseRepository[User](User, self.log)

    # ========================================================================
    # PUBLIC API - Write Operations
    # ========================================================================

    async def register_identity(self, identity: AuthenticatedUser) -> Dict[str, Any]:
        """
        Create or refresh the User behind an authenticated identity.

        Returns:
            Dict with user data plus `created` and `changed_fields`

        Raises:
            ValidationError: Identity claims fail validation
            DuplicateIdentityError: Email or contact belongs to another user
        """
        external_id = InputValidator.validate_string(
            identity.external_id, "external_id", min_length=1, max_length=128
        )
        profile = {
            "name": InputValidator.validate_name(identity.name, "user_name"),
            "contact": InputValidator.validate_contact(identity.contact),
            "age": InputValidator.validate_age(identity.age),
            "email": InputValidator.validate_email(identity.email),
        }

        async with DatabaseService.get_transaction() as session:
            user = await self._user_repo.find_one_where(
                session, User.external_id == external_id, for_update=True
            )
            if identity.id is not None and user is not None and user.id != identity.id:
                raise ValidationError("id", "Does not match the user registered for this identity")

            await self._ensure_unique(session, "contact", profile["contact"], user)
            if profile["email"] is not None:
                await self._ensure_unique(session, "email", profile["email"], user)

            created = user is None
            changed_fields: List[str] = []
            if created:
                user = self._user_repo.add(session, User(external_id=external_id, **profile))
            else:
                for field in self._PROFILE_FIELDS:
                    if getattr(user, field) != profile[field]:
                        setattr(user, field, profile[field])
                        changed_fields.append(field)

            await self._user_repo.flush(session)
            result = self._serialize_user(user)

        result["created"] = created
        result["changed_fields"] = changed_fields

        self.log_operation(
            "register_identity",
            user_id=result["user_id"],
            created=created,
            changed_fields=changed_fields,
        )
        if created:
            await self.emit_event(
                events.USER_REGISTERED,
                {"user_id": result["user_id"], "external_id": external_id},
            )
        elif changed_fields:
            await self.emit_event(
                events.USER_UPDATED,
                {"user_id": result["user_id"], "changed_fields": changed_fields},
            )
        return result

    # ========================================================================
    # PUBLIC API - Read Operations
    # ========================================================================

    async def get_user(self, user_id: int) -> Dict[str, Any]:
        """
        Raises:
            UserNotFoundError: No such user
        """
        user_id = InputValidator.validate_positive_integer(user_id, "user_id")

        async with DatabaseService.get_session() as session:
            user = await self._user_repo.get(session, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            return self._serialize_user(user)

    async def get_user_by_external_id(self, external_id: str) -> Dict[str, Any]:
        """
        Raises:
            UserNotFoundError: No user registered for this identity
        """
        external_id = InputValidator.validate_string(
            external_id, "external_id", min_length=1, max_length=128
        )

        async with DatabaseService.get_session() as session:
            user = await self._user_repo.find_one_where(session, User.external_id == external_id)
            if user is None:
                raise UserNotFoundError(external_id)
            return self._serialize_user(user)

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _ensure_unique(
        self, session: AsyncSession, field: str, value: str, current: Any
    ) -> None:
        column = getattr(User, field)
        conditions = [column == value]
        if current is not None:
            conditions.append(User.id != current.id)

        if await self._user_repo.exists(session, *conditions):
            error = DuplicateIdentityError(field, value)
            self.log_rejection("register_identity", error)
            raise error

    @staticmethod
    def _serialize_user(user: User) -> Dict[str, Any]:
        return {
            "user_id": user.id,
            "external_id": user.external_id,
            "name": user.name,
            "email": user.email,
            "contact": user.contact,
            "age": user.age,
            "created_at": user.created_at,
        }
