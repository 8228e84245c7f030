"""Kite Connect handshake: trade web-session cookies for an API access token."""

import hashlib
from typing import Any, Dict

import httpx

from core.config.settings import Settings
from core.logging import get_broker_logger_safe
from .cookies import set_cookie_to_cookie_header
from .exceptions import SessionHandshakeFailed
from .kite_client import KiteClient, RedirectResult
from .models import APISession, OMSSession

logger = get_broker_logger_safe("api_session")


def generate_checksum(api_key: str, request_token: str, api_secret: str) -> str:
    """Hex SHA-256 of api_key + request_token + api_secret."""
    data = f"{api_key}{request_token}{api_secret}".encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class APISessionDriver:
    """Chases the connect/login and connect/finish redirects, then exchanges the token."""

    def __init__(self, client: KiteClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def generate(self, oms_session: OMSSession, api_key: str, api_secret: str) -> APISession:
        try:
            return await self._generate(oms_session, api_key, api_secret)
        except httpx.HTTPError as e:
            logger.warning("API handshake transport error",
                           user_id=oms_session.user_id, error=str(e))
            raise SessionHandshakeFailed(f"Broker unreachable: {e}", step="transport") from e

    async def _generate(self, oms_session: OMSSession, api_key: str, api_secret: str) -> APISession:
        kite = self.settings.kite
        cookie_header = set_cookie_to_cookie_header(oms_session.raw_cookies)
        headers = self.client.browser_headers(cookie_header)

        login_redirect = await self.client.get_redirect(
            kite.connect_login_url,
            params={"v": kite.kite_version, "api_key": api_key},
            headers=headers,
        )
        sess_id = self._redirect_param(login_redirect, "sess_id", "session_id")

        finish_redirect = await self.client.get_redirect(
            kite.connect_finish_url,
            params={"v": kite.kite_version, "api_key": api_key, "sess_id": sess_id},
            headers=headers,
        )
        request_token = self._redirect_param(finish_redirect, "request_token", "request_token")

        checksum = generate_checksum(api_key, request_token, api_secret)
        api_session = await self._exchange_token(api_key, request_token, checksum)

        logger.info("API session established", user_id=oms_session.user_id, api_key=api_key)
        return APISession(oms_session=oms_session, api_session=api_session)

    @staticmethod
    def _redirect_param(result: RedirectResult, name: str, step: str) -> str:
        if result.status_code != 302:
            raise SessionHandshakeFailed(
                f"Expected 302 while fetching {step}, got {result.status_code}",
                step=step,
                status_code=result.status_code,
                body=result.body,
            )
        if not result.location:
            raise SessionHandshakeFailed(f"No location header while fetching {step}",
                                         step=step, status_code=result.status_code)
        value = result.query_param(name)
        if not value:
            raise SessionHandshakeFailed(f"No {name} found in redirect URL",
                                         step=step, status_code=result.status_code)
        return value

    async def _exchange_token(self, api_key: str, request_token: str, checksum: str) -> Dict[str, Any]:
        response = await self.client.post_form(
            self.settings.kite.token_url,
            {"api_key": api_key, "request_token": request_token, "checksum": checksum},
            headers={"X-Kite-Version": self.settings.kite.kite_version},
        )
        if response.status_code != 200:
            raise SessionHandshakeFailed(
                f"Session token generation failed [{response.status_code}]",
                step="token_exchange",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            data = response.json().get("data")
        except (ValueError, AttributeError) as e:
            raise SessionHandshakeFailed("Session token response was not JSON",
                                         step="token_exchange",
                                         status_code=response.status_code,
                                         body=response.text) from e
        if not isinstance(data, dict) or not data.get("access_token"):
            raise SessionHandshakeFailed("Session token response carried no access_token",
                                         step="token_exchange",
                                         status_code=response.status_code,
                                         body=response.text)
        return data

    async def invalidate(self, api_key: str, access_token: str) -> bool:
        """Best-effort upstream logout of an API access token."""
        try:
            response = await self.client.delete(
                self.settings.kite.token_url,
                params={"api_key": api_key, "access_token": access_token},
                headers={"X-Kite-Version": self.settings.kite.kite_version},
            )
        except httpx.HTTPError as e:
            logger.warning("Upstream session invalidation failed", api_key=api_key, error=str(e))
            return False
        if not response.is_success:
            logger.warning("Upstream session invalidation rejected",
                           api_key=api_key, status_code=response.status_code)
            return False
        return True
