# Structured exception hierarchy for the Kite gateway

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class KiteGatewayException(Exception):
    """Base exception for all gateway specific errors"""

    # Envelope error type and HTTP status used by the API layer
    error_type = "InternalException"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 correlation_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.correlation_id = correlation_id
        self.timestamp = datetime.now(timezone.utc)


class InputValidationError(KiteGatewayException):
    """Caller supplied a missing or malformed parameter"""
    error_type = "InputException"
    status_code = 400


# Infrastructure Errors
class StorageFailure(KiteGatewayException):
    """Database connection or query failures"""
    error_type = "DatabaseException"
    status_code = 500

    def __init__(self, message: str, operation: str, table: Optional[str] = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.table = table

