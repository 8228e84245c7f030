"""Instrument mirror exceptions."""

from core.utils.exceptions import KiteGatewayException


class RefreshFailed(KiteGatewayException):
    """Fetching, parsing or writing the instrument feed failed."""
    error_type = "DatabaseException"
    status_code = 500
