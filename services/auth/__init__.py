"""Broker session acquisition, caching and account registry."""

from .service import AuthService
from .auth_manager import AuthManager
from .session_manager import SessionManager
from .kite_client import KiteClient, RedirectResult
from .cookies import CookieJar
from .totp import generate_totp
from .api_session import APISessionDriver, generate_checksum
from .oms_session import OMSSessionDriver
from .models import (
    LoginType,
    OMSSessionRequest,
    APISessionRequest,
    OMSSession,
    APISession,
    SessionRecord,
    SessionResult,
    build_session_request,
)
from .exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    SessionNotFoundError,
    ExternalAuthFailed,
    SessionHandshakeFailed,
    InvalidSecretFormat,
)

__all__ = [
    "AuthService",
    "AuthManager",
    "SessionManager",
    "KiteClient",
    "RedirectResult",
    "CookieJar",
    "generate_totp",
    "APISessionDriver",
    "generate_checksum",
    "OMSSessionDriver",
    "LoginType",
    "OMSSessionRequest",
    "APISessionRequest",
    "OMSSession",
    "APISession",
    "SessionRecord",
    "SessionResult",
    "build_session_request",
    "AuthenticationError",
    "InvalidCredentialsError",
    "SessionNotFoundError",
    "ExternalAuthFailed",
    "SessionHandshakeFailed",
    "InvalidSecretFormat",
]
