"""
Pytest configuration and shared fixtures for Kite gateway tests.
"""
import hashlib
from typing import Callable, Dict, List, Set, Tuple
from urllib.parse import parse_qsl

import httpx
import pytest

from core.config.settings import DatabaseSettings, LoggingSettings, Settings
from core.database.connection import DatabaseManager
from services.auth.kite_client import KiteClient

TEST_TOTP_SECRET = "JBSWY3DPEHPK3PXP"
BROKER_USER_ID = "AB1234"

INSTRUMENTS_CSV = (
    "instrument_token,exchange_token,tradingsymbol,name,last_price,expiry,strike,"
    "tick_size,lot_size,instrument_type,segment,exchange\n"
    '408065,1594,INFY,"INFOSYS, LTD",0,,0,0.05,1,EQ,NSE,NSE\n'
    "12345678,48225,NIFTY24JAN21500CE,NIFTY,0,2024-01-25,21500,0.05,50,CE,NFO-OPT,NFO\n"
    "12345679,48226,NIFTY24JAN22000CE,NIFTY,0,2024-01-25,22000,0.05,50,CE,NFO-OPT,NFO\n"
)

Handler = Callable[[httpx.Request], httpx.Response]


def form_of(request: httpx.Request) -> Dict[str, str]:
    return dict(parse_qsl(request.content.decode()))


class MockKiteBroker:
    """
    In-memory stand-in for the broker web host, API host and instrument feed.

    Every request is recorded. Issued enctokens stay valid until removed from
    `valid_enctokens`; individual endpoints can be replaced with `override`.
    """

    def __init__(self, api_secret: str = "api-secret"):
        self.api_secret = api_secret
        self.requests: List[httpx.Request] = []
        self.valid_enctokens: Set[str] = set()
        self.issued = 0
        self.instruments_csv = INSTRUMENTS_CSV
        self._overrides: Dict[Tuple[str, str], Handler] = {}
        self._routes: Dict[Tuple[str, str], Handler] = {
            ("POST", "/api/login"): self._login,
            ("POST", "/api/twofa"): self._twofa,
            ("GET", "/oms/user/profile"): self._profile,
            ("GET", "/connect/login"): self._connect_login,
            ("GET", "/connect/finish"): self._connect_finish,
            ("POST", "/session/token"): self._token,
            ("DELETE", "/session/token"): self._invalidate,
            ("GET", "/instruments"): self._instruments,
        }

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def override(self, method: str, path: str, handler: Handler) -> None:
        self._overrides[(method, path)] = handler

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        handler = self._overrides.get(key) or self._routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"status": "error", "message": "Not found"})
        return handler(request)

    def _login(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[
                ("set-cookie", "kf_session=kf-1; Path=/; Secure; HttpOnly"),
                ("set-cookie", "_cfuvid=cf-1; Expires=Wed, 21 Oct 2026 07:28:00 GMT; Path=/"),
            ],
            json={
                "status": "success",
                "data": {
                    "user_id": BROKER_USER_ID,
                    "request_id": "req-1",
                    "twofa_type": "totp",
                },
            },
        )

    def _twofa(self, request: httpx.Request) -> httpx.Response:
        form = form_of(request)
        cookie = request.headers.get("cookie", "")
        value = form.get("twofa_value", "")
        if "kf_session=kf-1" not in cookie or len(value) != 6 or not value.isdigit():
            return httpx.Response(400, json={"status": "error", "message": "Bad 2FA"})

        self.issued += 1
        enctoken = f"enc-{self.issued}"
        self.valid_enctokens.add(enctoken)
        return httpx.Response(
            200,
            headers=[
                ("set-cookie", f"enctoken={enctoken}; Path=/; Secure"),
                ("set-cookie", f"public_token=pub-{self.issued}; Path=/"),
                ("set-cookie", f"user_id={BROKER_USER_ID}; Path=/"),
            ],
            json={"status": "success", "data": {"profile": {}}},
        )

    def _profile(self, request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("authorization", "")
        if auth.replace("enctoken ", "", 1) not in self.valid_enctokens:
            return httpx.Response(403, json={"status": "error", "error_type": "TokenException"})
        return httpx.Response(200, json={
            "status": "success",
            "data": {
                "user_id": BROKER_USER_ID,
                "user_type": "individual",
                "email": "trader@example.com",
                "user_name": "Test Trader",
                "user_shortname": "Trader",
                "broker": "ZERODHA",
                "exchanges": ["NSE", "NFO"],
                "products": ["CNC", "MIS"],
                "order_types": ["LIMIT", "MARKET"],
                "avatar_url": None,
                "meta": {"demat_consent": "consent"},
            },
        })

    def _connect_login(self, request: httpx.Request) -> httpx.Response:
        api_key = request.url.params.get("api_key")
        return httpx.Response(302, headers={
            "location": f"/connect/login?api_key={api_key}&sess_id=sess-1",
        })

    def _connect_finish(self, request: httpx.Request) -> httpx.Response:
        if request.url.params.get("sess_id") != "sess-1":
            return httpx.Response(400, text="bad session")
        return httpx.Response(302, headers={
            "location": "https://127.0.0.1/callback?request_token=rt-1&action=login&status=success",
        })

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = form_of(request)
        expected = hashlib.sha256(
            f"{form.get('api_key')}{form.get('request_token')}{self.api_secret}".encode()
        ).hexdigest()
        if form.get("checksum") != expected:
            return httpx.Response(403, json={"status": "error", "message": "Invalid checksum"})
        return httpx.Response(200, json={
            "status": "success",
            "data": {
                "user_id": BROKER_USER_ID,
                "api_key": form.get("api_key"),
                "access_token": "at-1",
                "public_token": "pub-api-1",
                "login_time": "2024-01-10 09:15:00",
            },
        })

    def _invalidate(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "success", "data": True})

    def _instruments(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=self.instruments_csv)


@pytest.fixture
def test_settings():
    """Test settings configuration."""
    return Settings(
        environment="testing",
        database=DatabaseSettings(url="sqlite+aiosqlite://"),
        logging=LoggingSettings(console_enabled=False, json_format=False),
    )


@pytest.fixture
async def db_manager(test_settings):
    """Database manager backed by a fresh in-memory SQLite database."""
    manager = DatabaseManager(
        db_url=test_settings.database.url,
        environment=test_settings.environment.value,
    )
    await manager.init()
    yield manager
    await manager.shutdown()


@pytest.fixture
def mock_broker():
    return MockKiteBroker()


@pytest.fixture
def kite_client(test_settings, mock_broker):
    return KiteClient(test_settings, transport=mock_broker.transport())


@pytest.fixture
def totp_secret():
    return TEST_TOTP_SECRET


@pytest.fixture
def broker_user_id():
    return BROKER_USER_ID
