from enum import Enum
from typing import Any, Dict, List

from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorType(str, Enum):
    INPUT = "InputException"
    AUTHENTICATION = "AuthenticationException"
    DATABASE = "DatabaseException"
    NOT_FOUND = "NotFoundException"
    INTERNAL = "InternalException"
    METHOD_NOT_ALLOWED = "MethodNotAllowed"


class ErrorResponse(BaseModel):
    """Error response model"""
    status: str = "error"
    error_type: ErrorType
    message: str


class RegisterResult(BaseModel):
    message: str
    user_id: str
    operation: str


class LogoutResult(BaseModel):
    message: str
    user_id: str
    deleted: int


class TotpResult(BaseModel):
    message: str
    totp_value: str


class RefreshSummary(BaseModel):
    message: str
    total_instruments: int


class InstrumentQueryResult(BaseModel):
    count: int
    query: Dict[str, Any]
    instruments: List[Dict[str, Any]]


class DatabaseHealth(BaseModel):
    status: str
    instrument_count: int = 0
    user_count: int = 0


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    uptime_seconds: float
    database: DatabaseHealth


def success_response(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "success", "data": data})


def error_response(error_type: ErrorType, message: str, status_code: int = 400) -> JSONResponse:
    body = ErrorResponse(error_type=error_type, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
