"""
poa.transport — Async HTTP transport used by the probe battery.

Bodies are decoded as JSON whenever they parse, otherwise left as text.
Timeouts, connection failures and (unless accept_any_status is set)
non-2xx statuses raise TransportError so probes can turn them into
failed checks.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "poa-verifier/1.0"


class TransportError(Exception):
    """Timeout, connection failure or otherwise unusable response."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"{url}: {message}")


class HttpStatusError(TransportError):
    """Response arrived but its status was not accepted."""

    def __init__(self, url: str, status: int):
        self.status = status
        super().__init__(url, f"unexpected status {status}")


@dataclass
class HttpResponse:
    status: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())


def _decode_body(resp: httpx.Response) -> Any:
    text = resp.text
    if not text:
        return ""
    try:
        return json.loads(text)
    except ValueError:
        return text


class HttpTransport:
    """Thin wrapper over httpx.AsyncClient with per-call timeouts (seconds)."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, *,
                 follow_redirects: bool = True):
        self._client = client
        self._owns_client = client is None
        self._follow_redirects = follow_redirects

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=self._follow_redirects,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def get(self, url: str, timeout: float, *,
                  accept_any_status: bool = False) -> HttpResponse:
        return await self._request("GET", url, timeout, accept_any_status=accept_any_status)

    async def post(self, url: str, body: Any, timeout: float, *,
                   accept_any_status: bool = False) -> HttpResponse:
        return await self._request("POST", url, timeout, json_body=body,
                                   accept_any_status=accept_any_status)

    async def _request(self, method: str, url: str, timeout: float, *,
                       json_body: Any = None, accept_any_status: bool = False) -> HttpResponse:
        try:
            resp = await self._get_client().request(method, url, json=json_body, timeout=timeout)
        except httpx.TimeoutException as e:
            raise TransportError(url, f"timeout after {timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(url, str(e) or type(e).__name__) from e

        if not accept_any_status and not 200 <= resp.status_code < 300:
            raise HttpStatusError(url, resp.status_code)

        return HttpResponse(
            status=resp.status_code,
            body=_decode_body(resp),
            headers={k.lower(): v for k, v in resp.headers.items()},
        )
