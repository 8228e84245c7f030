"""Thin HTTP layer for talking to the Zerodha Kite web and API hosts."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs, urljoin, urlsplit

import httpx

from core.config.settings import Settings
from core.logging import get_broker_logger_safe

logger = get_broker_logger_safe("kite_client")


@dataclass(frozen=True)
class RedirectResult:
    """Outcome of a request whose redirect is inspected rather than followed."""
    status_code: int
    location: Optional[str]
    body: str = ""

    @property
    def redirected(self) -> bool:
        return self.status_code == 302 and bool(self.location)

    def query_param(self, name: str) -> Optional[str]:
        if not self.location:
            return None
        values = parse_qs(urlsplit(self.location).query).get(name)
        return values[0] if values else None


def raw_set_cookie(response: httpx.Response) -> str:
    """All `Set-Cookie` headers of a response as one comma-joined string."""
    return ", ".join(response.headers.get_list("set-cookie"))


class KiteClient:
    """Issues single broker requests with explicit timeouts.

    A new `httpx.AsyncClient` is opened per request so cookies never persist
    between calls; callers pass the `Cookie` header they want sent.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.settings.kite.timeout_seconds,
            transport=self._transport,
            follow_redirects=False,
        )

    def browser_headers(self, cookie_header: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self.settings.kite.user_agent,
            "X-Kite-Version": self.settings.kite.kite_version,
        }
        if cookie_header:
            headers["Cookie"] = cookie_header
        return headers

    async def post_form(self, url: str, data: Mapping[str, Any],
                        headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        async with self._client() as client:
            response = await client.post(url, data=dict(data), headers=dict(headers or {}))
        logger.debug("Broker POST", url=url, status_code=response.status_code)
        return response

    async def get(self, url: str, params: Optional[Mapping[str, Any]] = None,
                  headers: Optional[Mapping[str, str]] = None,
                  timeout: Optional[float] = None) -> httpx.Response:
        async with self._client(timeout) as client:
            response = await client.get(url, params=params, headers=dict(headers or {}))
        logger.debug("Broker GET", url=url, status_code=response.status_code)
        return response

    async def delete(self, url: str, params: Optional[Mapping[str, Any]] = None,
                     headers: Optional[Mapping[str, str]] = None) -> httpx.Response:
        async with self._client() as client:
            response = await client.delete(url, params=params, headers=dict(headers or {}))
        logger.debug("Broker DELETE", url=url, status_code=response.status_code)
        return response

    async def get_redirect(self, url: str, params: Optional[Mapping[str, Any]] = None,
                           headers: Optional[Mapping[str, str]] = None) -> RedirectResult:
        """GET without following redirects; `Location` is resolved against the web host."""
        response = await self.get(url, params=params, headers=headers)
        location = response.headers.get("location")
        if location:
            location = urljoin(self.settings.kite.base_url + "/", location)
        return RedirectResult(
            status_code=response.status_code,
            location=location,
            body=response.text,
        )
