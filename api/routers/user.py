from typing import Optional
import time

from fastapi import APIRouter, Depends, Form, Request
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from api.schemas.responses import LogoutResult, RegisterResult, TotpResult, success_response
from core.logging import get_api_logger_safe, get_audit_logger_safe
from core.utils.exceptions import InputValidationError
from services.auth.service import AuthService

router = APIRouter(prefix="/user", tags=["User"])

# Initialize loggers
api_logger = get_api_logger_safe("user_api")
audit_logger = get_audit_logger_safe("user_audit")


def _require(**fields: Optional[str]) -> None:
    for name, value in fields.items():
        if not value:
            raise InputValidationError(f"{name} is required")


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register")
@inject
async def register(
    request: Request,
    user_id: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    totp_secret: Optional[str] = Form(None),
    auth_service: AuthService = Depends(Provide[AppContainer.auth_service]),
):
    """Create or update a broker account."""
    _require(user_id=user_id, password=password, totp_secret=totp_secret)
    result = await auth_service.register(user_id, password, totp_secret)
    audit_logger.info("Registration request handled",
                      user_id=user_id,
                      operation=result["operation"],
                      client_ip=_client_ip(request))
    return success_response(RegisterResult(**result).model_dump())


@router.post("/login")
@inject
async def login(
    request: Request,
    user_id: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    totp_secret: Optional[str] = Form(None),
    api_key: Optional[str] = Form(None),
    api_secret: Optional[str] = Form(None),
    auth_service: AuthService = Depends(Provide[AppContainer.auth_service]),
):
    """
    Return a broker session for the account.

    With `api_key` and `api_secret` the Kite Connect handshake runs after the
    web login and the token-exchange payload is returned; otherwise the web
    session merged with the user profile.
    """
    start_time = time.time()
    _require(user_id=user_id, password=password, totp_secret=totp_secret)

    result = await auth_service.login(user_id, password, totp_secret, api_key, api_secret)

    api_logger.info("Login request completed",
                    user_id=user_id,
                    login_type=result.login_type.value,
                    cached=result.cached,
                    client_ip=_client_ip(request),
                    processing_time_ms=(time.time() - start_time) * 1000)
    return success_response(result.payload)


@router.delete("/logout")
@inject
async def logout(
    request: Request,
    user_id: Optional[str] = Form(None),
    auth_service: AuthService = Depends(Provide[AppContainer.auth_service]),
):
    """Drop every stored session of the account."""
    if not user_id:
        user_id = request.query_params.get("user_id")
    _require(user_id=user_id)
    result = await auth_service.logout(user_id)
    audit_logger.info("Logout request handled", user_id=user_id,
                      deleted=result["deleted"], client_ip=_client_ip(request))
    return success_response(LogoutResult(**result).model_dump())


@router.post("/totp")
@inject
async def totp(
    totp_secret: Optional[str] = Form(None),
    auth_service: AuthService = Depends(Provide[AppContainer.auth_service]),
):
    """Current one-time code for a base32 secret."""
    _require(totp_secret=totp_secret)
    result = TotpResult(**auth_service.generate_totp(totp_secret))
    return success_response(result.model_dump())
