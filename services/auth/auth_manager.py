"""Manages registered broker accounts (`kite_users`)."""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.database.models import KiteUser
from core.logging import get_audit_logger_safe, get_error_logger_safe
from core.utils.exceptions import StorageFailure
from core.utils.time import format_timestamp
from .exceptions import InvalidCredentialsError
from .security import get_password_hash, verify_password
from .totp import normalize_secret, validate_secret

audit_logger = get_audit_logger_safe("auth_manager")
error_logger = get_error_logger_safe("auth_manager")


class AuthManager:
    """Registers accounts and verifies the credentials presented at login."""

    def __init__(self, settings: Settings, db_manager: DatabaseManager):
        self.settings = settings
        self.db_manager = db_manager

    async def register(self, user_id: str, password: str, totp_secret: str) -> str:
        """Create or overwrite an account; returns "created" or "updated".

        The password is re-hashed and the signing key rotated on every call.
        """
        validate_secret(totp_secret)
        password_hash = get_password_hash(password)
        hash_key = str(uuid.uuid4())
        timestamp = format_timestamp(tz_name=self.settings.timezone)

        try:
            async with self.db_manager.get_session() as db_session:
                result = await db_session.execute(
                    select(KiteUser).where(KiteUser.user_id == user_id)
                )
                user = result.scalar_one_or_none()

                if user is not None:
                    user.password_hash = password_hash
                    user.totp_secret = totp_secret
                    user.hash_key = hash_key
                    user.updated_at = timestamp
                    operation = "updated"
                else:
                    db_session.add(KiteUser(
                        user_id=user_id,
                        password_hash=password_hash,
                        totp_secret=totp_secret,
                        hash_key=hash_key,
                        created_at=timestamp,
                        updated_at=timestamp,
                    ))
                    operation = "created"

                await db_session.commit()
        except SQLAlchemyError as e:
            error_logger.error("Failed to register account", user_id=user_id, error=str(e))
            raise StorageFailure("Database operation failed", operation="upsert",
                                 table="kite_users") from e

        audit_logger.info("Account registered", user_id=user_id, operation=operation)
        return operation

    async def get_user(self, user_id: str) -> Optional[KiteUser]:
        try:
            async with self.db_manager.get_session() as db_session:
                result = await db_session.execute(
                    select(KiteUser).where(KiteUser.user_id == user_id)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            error_logger.error("Failed to load account", user_id=user_id, error=str(e))
            raise StorageFailure("Failed to load account", operation="select",
                                 table="kite_users") from e

    async def verify_credentials(self, user_id: str, password: str, totp_secret: str) -> KiteUser:
        """Raise InvalidCredentialsError unless all three match the stored account."""
        user = await self.get_user(user_id)
        if user is None:
            audit_logger.warning("Login for unknown account", user_id=user_id)
            raise InvalidCredentialsError()

        if not verify_password(password, user.password_hash):
            audit_logger.warning("Password mismatch", user_id=user_id)
            raise InvalidCredentialsError()

        if normalize_secret(user.totp_secret) != normalize_secret(totp_secret):
            audit_logger.warning("TOTP secret mismatch", user_id=user_id)
            raise InvalidCredentialsError()

        return user

    async def count_users(self) -> int:
        async with self.db_manager.get_session() as db_session:
            result = await db_session.execute(select(func.count(KiteUser.id)))
            return int(result.scalar() or 0)
