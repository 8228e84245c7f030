"""Time-based one-time passwords for the broker's second factor."""

import binascii
import time
from typing import Optional

import pyotp

from .exceptions import InvalidSecretFormat

DEFAULT_TIME_STEP = 30
DIGITS = 6


def normalize_secret(secret: str) -> str:
    """Uppercase, drop whitespace and trailing padding."""
    if not isinstance(secret, str):
        raise InvalidSecretFormat()
    return "".join(secret.split()).upper().rstrip("=")


def generate_totp(secret: str, time_step: int = DEFAULT_TIME_STEP,
                  for_time: Optional[float] = None) -> str:
    """Return the 6-digit code for `secret` at `for_time` (defaults to now).

    HMAC-SHA1 over the big-endian counter floor(t / time_step) with RFC 4226
    dynamic truncation, zero-padded.
    """
    if time_step <= 0:
        raise ValueError("time_step must be positive")

    normalized = normalize_secret(secret)
    if not normalized:
        raise InvalidSecretFormat()

    totp = pyotp.TOTP(normalized, digits=DIGITS, interval=time_step)
    moment = time.time() if for_time is None else for_time
    try:
        return totp.at(int(moment))
    except (binascii.Error, ValueError, TypeError) as e:
        raise InvalidSecretFormat(details={"reason": str(e)}) from e


def validate_secret(secret: str) -> str:
    """Raise InvalidSecretFormat unless the secret decodes; return it normalized."""
    generate_totp(secret, for_time=0)
    return normalize_secret(secret)
