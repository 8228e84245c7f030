"""Web (OMS) login: credentials, then TOTP second factor, then harvest cookies."""

from typing import Any, Dict

import httpx

from core.config.settings import Settings
from core.logging import get_broker_logger_safe
from core.utils.time import format_timestamp
from .cookies import CookieJar, join_set_cookie
from .exceptions import ExternalAuthFailed
from .kite_client import KiteClient, raw_set_cookie
from .models import OMSSession, SessionRequest
from .totp import generate_totp

logger = get_broker_logger_safe("oms_session")


def _json_body(response: httpx.Response, step: str) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError as e:
        raise ExternalAuthFailed(
            f"{step} returned a non-JSON body",
            status_code=response.status_code,
            body=response.text,
        ) from e
    if not isinstance(body, dict) or body.get("status") != "success":
        raise ExternalAuthFailed(
            f"{step} rejected",
            status_code=response.status_code,
            body=response.text,
        )
    return body


def _json_data(response: httpx.Response, step: str) -> Dict[str, Any]:
    data = _json_body(response, step).get("data")
    if not isinstance(data, dict):
        raise ExternalAuthFailed(
            f"{step} response carried no data",
            status_code=response.status_code,
            body=response.text,
        )
    return data


def _check_status(response: httpx.Response, step: str) -> None:
    if not response.is_success:
        raise ExternalAuthFailed(
            f"{step} failed [{response.status_code}]: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )


class OMSSessionDriver:
    """Drives the two-step web login. No retries; failures surface immediately."""

    def __init__(self, client: KiteClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def generate(self, request: SessionRequest) -> OMSSession:
        try:
            return await self._generate(request)
        except httpx.HTTPError as e:
            logger.warning("OMS login transport error",
                           user_id=request.user_id, error=str(e))
            raise ExternalAuthFailed(f"Broker unreachable: {e}") from e

    async def _generate(self, request: SessionRequest) -> OMSSession:
        kite = self.settings.kite

        login_response = await self.client.post_form(
            kite.login_url,
            {"user_id": request.user_id, "password": request.password},
        )
        _check_status(login_response, "Login")
        login_cookies = raw_set_cookie(login_response)
        login_data = _json_data(login_response, "Login")

        broker_user_id = login_data.get("user_id") or request.user_id
        request_id = login_data.get("request_id")
        twofa_type = login_data.get("twofa_type")
        if not request_id:
            raise ExternalAuthFailed("Login response carried no request_id",
                                     status_code=login_response.status_code,
                                     body=login_response.text)

        # TOTP is generated only after the first step succeeds
        twofa_value = generate_totp(request.totp_secret)
        login_jar = CookieJar.from_set_cookie(login_cookies)

        twofa_response = await self.client.post_form(
            kite.twofa_url,
            {
                "user_id": broker_user_id,
                "request_id": request_id,
                "twofa_value": twofa_value,
                "twofa_type": twofa_type,
            },
            headers={"Cookie": login_jar.header()} if login_jar else None,
        )
        _check_status(twofa_response, "2FA")
        _json_body(twofa_response, "2FA")
        twofa_cookies = raw_set_cookie(twofa_response)
        twofa_jar = CookieJar.from_set_cookie(twofa_cookies)

        enctoken = twofa_jar.get("enctoken")
        if not enctoken:
            raise ExternalAuthFailed("2FA response did not set an enctoken",
                                     status_code=twofa_response.status_code)

        logger.info("OMS session established", user_id=broker_user_id,
                    cookies=login_jar.merge(twofa_jar).names())

        return OMSSession(
            user_id=broker_user_id,
            enctoken=enctoken,
            kf_session=login_jar.get("kf_session"),
            public_token=twofa_jar.get("public_token"),
            login_time=format_timestamp(tz_name=self.settings.timezone),
            raw_cookies=join_set_cookie(login_cookies, twofa_cookies),
        )

    async def fetch_profile(self, enctoken: str) -> Dict[str, Any]:
        """Profile of the enctoken's owner; raises ExternalAuthFailed when unavailable."""
        try:
            response = await self.client.get(
                self.settings.kite.profile_url,
                headers={"Authorization": f"enctoken {enctoken}"},
            )
        except httpx.HTTPError as e:
            raise ExternalAuthFailed(f"Failed to get user profile: {e}") from e

        if response.status_code != 200:
            raise ExternalAuthFailed("Failed to get user profile",
                                     status_code=response.status_code,
                                     body=response.text)
        try:
            data = response.json().get("data")
        except (ValueError, AttributeError) as e:
            raise ExternalAuthFailed("Failed to get user profile",
                                     status_code=response.status_code,
                                     body=response.text) from e
        if not isinstance(data, dict):
            raise ExternalAuthFailed("Failed to get user profile",
                                     status_code=response.status_code,
                                     body=response.text)
        return data

    async def is_enctoken_valid(self, enctoken: str) -> bool:
        """True only when the profile endpoint answers 200."""
        try:
            response = await self.client.get(
                self.settings.kite.profile_url,
                headers={"Authorization": f"enctoken {enctoken}"},
            )
        except httpx.HTTPError as e:
            logger.warning("Enctoken probe failed", error=str(e))
            return False
        return response.status_code == 200
