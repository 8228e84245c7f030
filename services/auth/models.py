"""Authentication models for the broker session flow."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class LoginType(str, Enum):
    """How a stored session was obtained."""
    OMS = "OMS"
    API = "API"


@dataclass(frozen=True)
class OMSSessionRequest:
    """Web (OMS) login only."""
    user_id: str
    password: str
    totp_secret: str

    @property
    def login_type(self) -> LoginType:
        return LoginType.OMS


@dataclass(frozen=True)
class APISessionRequest:
    """Web login followed by the API-key handshake."""
    user_id: str
    password: str
    totp_secret: str
    api_key: str
    api_secret: str

    @property
    def login_type(self) -> LoginType:
        return LoginType.API

SessionRequest = Union[OMSSessionRequest, APISessionRequest]


def build_session_request(user_id: str, password: str, totp_secret: str,
                          api_key: Optional[str] = None,
                          api_secret: Optional[str] = None) -> SessionRequest:
    """API variant only when both key and secret are supplied."""
    if api_key and api_secret:
        return APISessionRequest(user_id, password, totp_secret, api_key, api_secret)
    return OMSSessionRequest(user_id, password, totp_secret)


@dataclass
class OMSSession:
    """Result of the web login + 2FA."""
    user_id: str
    enctoken: str
    kf_session: Optional[str]
    public_token: Optional[str]
    login_time: str
    raw_cookies: str = field(repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "enctoken": self.enctoken,
            "kf_session": self.kf_session,
            "public_token": self.public_token,
            "login_time": self.login_time,
        }


@dataclass
class APISession:
    """OMS session plus the token-exchange payload."""
    oms_session: OMSSession
    api_session: Dict[str, Any]

    @property
    def access_token(self) -> Optional[str]:
        return self.api_session.get("access_token")

# Profile fields copied into an OMS-only session payload
PROFILE_FIELDS = (
    "user_id", "user_type", "email", "user_name", "user_shortname", "broker",
    "exchanges", "products", "order_types", "avatar_url", "meta",
)


def build_oms_payload(oms_session: OMSSession, profile: Dict[str, Any]) -> Dict[str, Any]:
    """Merge profile details with the web session tokens."""
    payload = {key: profile.get(key) for key in PROFILE_FIELDS}
    payload["user_id"] = profile.get("user_id") or oms_session.user_id
    payload["enctoken"] = oms_session.enctoken
    payload["kf_session"] = oms_session.kf_session
    payload["public_token"] = oms_session.public_token
    payload["login_time"] = oms_session.login_time
    return payload


@dataclass
class SessionRecord:
    """A stored session row, decoded."""
    id: int
    user_id: str
    enctoken: Optional[str]
    api_key: Optional[str]
    access_token: Optional[str]
    kite_session: Optional[str]
    login_type: LoginType
    login_time: Optional[str]
    created_at: str

    @classmethod
    def from_row(cls, row) -> "SessionRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            enctoken=row.enctoken,
            api_key=row.api_key,
            access_token=row.access_token,
            kite_session=row.kite_session,
            login_type=LoginType(row.login_type),
            login_time=row.login_time,
            created_at=row.created_at,
        )

    def payload(self) -> Optional[Dict[str, Any]]:
        """Deserialized session snapshot, or None if missing or corrupt."""
        if not self.kite_session:
            return None
        try:
            data = json.loads(self.kite_session)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None


@dataclass
class SessionResult:
    """What the session cache hands back to callers."""
    payload: Dict[str, Any]
    login_type: LoginType
    cached: bool

