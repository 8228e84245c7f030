"""Session cache: reuse a stored broker session while it is valid, otherwise log in again."""

import asyncio
import json
import weakref
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.database.models import KiteSession
from core.logging import get_audit_logger_safe, get_error_logger_safe, get_logger_safe
from core.utils.exceptions import StorageFailure
from core.utils.time import format_timestamp
from .api_session import APISessionDriver
from .exceptions import (
    ExternalAuthFailed,
    InvalidCredentialsError,
    SessionHandshakeFailed,
    SessionNotFoundError,
)
from .kite_client import KiteClient
from .models import (
    APISessionRequest,
    SessionRecord,
    SessionRequest,
    SessionResult,
    build_oms_payload,
)
from .oms_session import OMSSessionDriver

logger = get_logger_safe(__name__, "auth")
audit_logger = get_audit_logger_safe("session_manager")
error_logger = get_error_logger_safe("session_manager")


class SessionManager:
    """Owns the `kite_sessions` table.

    Records are insert-only; the current session of an account is the row
    with the greatest `created_at` (ties broken by `id`). Logins of the same
    account are serialised in-process so concurrent callers never run two
    broker handshakes at once.
    """

    def __init__(self, settings: Settings, db_manager: DatabaseManager, client: KiteClient):
        self.settings = settings
        self.db_manager = db_manager
        self.oms_driver = OMSSessionDriver(client, settings)
        self.api_driver = APISessionDriver(client, settings)
        # Entries vanish once no caller holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def latest_session(self, user_id: str) -> Optional[SessionRecord]:
        """Most recent stored session, or None. Storage errors raise StorageFailure."""
        try:
            async with self.db_manager.get_session() as db_session:
                result = await db_session.execute(
                    select(KiteSession)
                    .where(KiteSession.user_id == user_id)
                    .order_by(KiteSession.created_at.desc(), KiteSession.id.desc())
                    .limit(1)
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            error_logger.error("Failed to read latest session", user_id=user_id, error=str(e))
            raise StorageFailure("Failed to read session", operation="select",
                                 table="kite_sessions") from e
        return SessionRecord.from_row(row) if row is not None else None

    async def is_enctoken_valid(self, enctoken: str) -> bool:
        return await self.oms_driver.is_enctoken_valid(enctoken)

    async def obtain_session(self, request: SessionRequest) -> SessionResult:
        """Return a valid session for the account, logging in only when needed."""
        async with self._lock_for(request.user_id):
            record = await self.latest_session(request.user_id)
            if record is not None and record.enctoken:
                payload = record.payload()
                if payload is not None and await self.is_enctoken_valid(record.enctoken):
                    audit_logger.info("Reusing stored session",
                                      user_id=request.user_id,
                                      login_type=record.login_type.value,
                                      session_id=record.id)
                    return SessionResult(payload=payload, login_type=record.login_type, cached=True)
                logger.info("Stored session unusable, logging in again",
                            user_id=request.user_id, session_id=record.id)

            try:
                payload, enctoken, access_token = await self._login(request)
            except (ExternalAuthFailed, SessionHandshakeFailed) as e:
                error_logger.warning("Broker login failed",
                                     user_id=request.user_id,
                                     login_type=request.login_type.value,
                                     error=e.message,
                                     upstream_status=e.upstream_status)
                raise InvalidCredentialsError(
                    details={"reason": e.message, "upstream_status": e.upstream_status},
                ) from e

            await self._store(request, payload, enctoken, access_token)
            audit_logger.info("New broker session issued",
                              user_id=request.user_id,
                              login_type=request.login_type.value)
            return SessionResult(payload=payload, login_type=request.login_type, cached=False)

    async def _login(self, request: SessionRequest):
        oms_session = await self.oms_driver.generate(request)
        if isinstance(request, APISessionRequest):
            api_session = await self.api_driver.generate(
                oms_session, request.api_key, request.api_secret
            )
            return api_session.api_session, oms_session.enctoken, api_session.access_token

        profile = await self.oms_driver.fetch_profile(oms_session.enctoken)
        return build_oms_payload(oms_session, profile), oms_session.enctoken, None

    async def _store(self, request: SessionRequest, payload: Dict[str, Any],
                     enctoken: Optional[str], access_token: Optional[str]) -> None:
        """Insert a new record; failures are logged and the session still returned."""
        now = format_timestamp(tz_name=self.settings.timezone)
        row = KiteSession(
            user_id=request.user_id,
            enctoken=enctoken,
            api_key=request.api_key if isinstance(request, APISessionRequest) else None,
            access_token=access_token,
            kite_session=json.dumps(payload),
            login_type=request.login_type.value,
            login_time=payload.get("login_time") or now,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db_manager.get_session() as db_session:
                db_session.add(row)
                await db_session.commit()
        except SQLAlchemyError as e:
            error_logger.error("Failed to store session",
                               user_id=request.user_id, error=str(e))

    async def logout(self, user_id: str) -> int:
        """Delete every stored session of the account; returns the number removed."""
        if await self.latest_session(user_id) is None:
            raise SessionNotFoundError()

        async with self._lock_for(user_id):
            record = await self.latest_session(user_id)
            if record is None:
                raise SessionNotFoundError()

            if record.api_key and record.access_token:
                invalidated = await self.api_driver.invalidate(record.api_key, record.access_token)
                logger.info("Upstream session invalidation", user_id=user_id, success=invalidated)

            try:
                async with self.db_manager.get_session() as db_session:
                    result = await db_session.execute(
                        delete(KiteSession).where(KiteSession.user_id == user_id)
                    )
                    await db_session.commit()
            except SQLAlchemyError as e:
                error_logger.error("Failed to delete sessions", user_id=user_id, error=str(e))
                raise StorageFailure("Failed to delete sessions", operation="delete",
                                     table="kite_sessions") from e

            deleted = result.rowcount or 0
            if deleted == 0:
                raise SessionNotFoundError()
            audit_logger.info("Sessions removed", user_id=user_id, deleted=deleted)
            return deleted

    async def count_sessions(self, user_id: str) -> int:
        async with self.db_manager.get_session() as db_session:
            result = await db_session.execute(
                select(func.count(KiteSession.id)).where(KiteSession.user_id == user_id)
            )
            return int(result.scalar() or 0)
