"""Authentication exceptions for the Kite gateway."""

from core.utils.exceptions import InputValidationError, KiteGatewayException


class AuthenticationError(KiteGatewayException):
    """Base authentication error."""
    error_type = "AuthenticationException"
    status_code = 401


class InvalidCredentialsError(AuthenticationError):
    """Unknown account, wrong password or mismatched TOTP secret."""

    def __init__(self, message: str = "Invalid credentials", **kwargs):
        super().__init__(message, **kwargs)


class SessionNotFoundError(AuthenticationError):
    """No stored session exists for the account."""

    def __init__(self, message: str = "No active session found for this user", **kwargs):
        super().__init__(message, **kwargs)


class ExternalAuthFailed(AuthenticationError):
    """The broker rejected the login or 2FA step, or the call failed."""

    def __init__(self, message: str, status_code: int | None = None,
                 body: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.upstream_status = status_code
        self.upstream_body = body


class SessionHandshakeFailed(AuthenticationError):
    """A step of the API-key handshake returned an unexpected response."""

    def __init__(self, message: str, step: str, status_code: int | None = None,
                 body: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step = step
        self.upstream_status = status_code
        self.upstream_body = body


class InvalidSecretFormat(InputValidationError):
    """TOTP secret is not valid base32."""

    def __init__(self, message: str = (
            "Invalid TOTP secret format. Must be a valid base32 encoded string."), **kwargs):
        super().__init__(message, **kwargs)
