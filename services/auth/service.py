from typing import Any, Dict, Optional

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.logging import get_logger_safe
from .auth_manager import AuthManager
from .kite_client import KiteClient
from .models import SessionResult, build_session_request
from .session_manager import SessionManager
from .totp import generate_totp

logger = get_logger_safe(__name__, "auth")


class AuthService:
    """High-level facade used by the API and CLI."""

    def __init__(self, settings: Settings, db_manager: DatabaseManager, kite_client: KiteClient):
        self.settings = settings
        self.db_manager = db_manager
        self.auth_manager = AuthManager(settings, db_manager)
        self.session_manager = SessionManager(settings, db_manager, kite_client)

    async def register(self, user_id: str, password: str, totp_secret: str) -> Dict[str, Any]:
        operation = await self.auth_manager.register(user_id, password, totp_secret)
        message = (
            "User updated successfully" if operation == "updated"
            else "User registered successfully"
        )
        return {"message": message, "user_id": user_id, "operation": operation}

    async def login(self, user_id: str, password: str, totp_secret: str,
                    api_key: Optional[str] = None,
                    api_secret: Optional[str] = None) -> SessionResult:
        """Verify the local account, then hand back a cached or fresh broker session."""
        await self.auth_manager.verify_credentials(user_id, password, totp_secret)
        request = build_session_request(user_id, password, totp_secret, api_key, api_secret)
        result = await self.session_manager.obtain_session(request)
        logger.info("Login completed", user_id=user_id,
                    login_type=result.login_type.value, cached=result.cached)
        return result

    async def logout(self, user_id: str) -> Dict[str, Any]:
        deleted = await self.session_manager.logout(user_id)
        return {"message": "Logout successful", "user_id": user_id, "deleted": deleted}

    def generate_totp(self, totp_secret: str) -> Dict[str, Any]:
        return {"message": "TOTP generated successfully", "totp_value": generate_totp(totp_secret)}
