"""
HTTP fetcher shared by every component. Wraps httpx with a hard timeout,
keep-alive pools kept apart per scheme, and the process-wide TLS verification
switch. No retries happen here; callers that want a second attempt ask for one.
"""
from __future__ import annotations
import asyncio
import logging
import socket
from typing import Optional

import httpx

from ..core.errors import DnsError, FetchError, FetchTimeout, MalformedResponse, NetworkError, UpstreamError

log = logging.getLogger("iptvweb.fetcher")

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def _is_dns_failure(exc: BaseException) -> bool:
    seen = set()
    cur: Optional[BaseException] = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        if isinstance(cur, socket.gaierror):
            return True
        if any(m in str(cur).lower() for m in _DNS_MARKERS):
            return True
        cur = cur.__cause__ or cur.__context__
    return False


class Fetcher:
    def __init__(
        self,
        *,
        timeout: float = 15.0,
        insecure: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.insecure = insecure
        self.ssl_context = httpx.create_ssl_context(verify=not insecure)
        self._transport = transport         # tests inject httpx.MockTransport here
        self._client: Optional[httpx.AsyncClient] = None

    def _mounts(self, *, pooled: bool) -> dict[str, httpx.AsyncBaseTransport]:
        limits = httpx.Limits() if pooled else httpx.Limits(max_keepalive_connections=0)
        return {
            "http://": httpx.AsyncHTTPTransport(limits=limits),
            "https://": httpx.AsyncHTTPTransport(limits=limits, verify=self.ssl_context),
        }

    def _build_client(self, *, pooled: bool) -> httpx.AsyncClient:
        options = dict(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": DEFAULT_UA},
            follow_redirects=True,
        )
        if self._transport is not None:
            return httpx.AsyncClient(transport=self._transport, **options)
        return httpx.AsyncClient(mounts=self._mounts(pooled=pooled), **options)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = self._build_client(pooled=True)
        return self._client

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    def _translate(self, exc: BaseException, url: str) -> FetchError:
        if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
            return FetchTimeout(f"Request timeout after {int(self.timeout * 1000)}ms")
        if _is_dns_failure(exc):
            return DnsError(f"getaddrinfo ENOTFOUND {urlhost(url)}")
        return NetworkError(str(exc) or exc.__class__.__name__)

    async def fetch(
        self,
        url: str,
        *,
        headers: dict | None = None,
        params: dict | None = None,
        stream: bool = False,
        pooled: bool = True,
    ) -> httpx.Response:
        """GET `url` under the process timeout.

        With `stream=True` the body is left unread and the caller owns
        `await resp.aclose()`. `pooled=False` uses a throwaway client with
        keep-alive disabled; such responses are always fully buffered.
        """
        client = self._get_client() if pooled else self._build_client(pooled=False)
        if not pooled:
            stream = False
            headers = {**(headers or {}), "Connection": "close"}

        try:
            request = client.build_request("GET", url, headers=headers, params=params)
            return await asyncio.wait_for(client.send(request, stream=stream), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.HTTPError, httpx.InvalidURL) as exc:
            raise self._translate(exc, url) from exc
        finally:
            if not pooled:
                await client.aclose()

    async def read(self, resp: httpx.Response) -> bytes:
        """Buffer a streamed response body, then release it.

        Failures while the body is in flight map the same way as in `fetch`.
        """
        url = str(resp.request.url)
        try:
            return await asyncio.wait_for(resp.aread(), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.HTTPError) as exc:
            raise self._translate(exc, url) from exc
        finally:
            await resp.aclose()

    # ── convenience methods ──────────────────

    async def get_text(self, url: str, *, headers: dict | None = None, pooled: bool = True) -> str:
        resp = await self.fetch(url, headers=headers, pooled=pooled)
        if not resp.is_success:
            raise UpstreamError(resp.status_code, url)
        return resp.text

    async def get_json(self, url: str, *, params: dict | None = None, headers: dict | None = None):
        resp = await self.fetch(url, params=params, headers=headers)
        if not resp.is_success:
            raise UpstreamError(resp.status_code, url)
        try:
            return resp.json()
        except ValueError as exc:
            log.warning("Non-JSON body from %s (%s)", url, resp.headers.get("content-type", "no content-type"))
            raise MalformedResponse(resp.status_code, url) from exc


def urlhost(url: str) -> str:
    try:
        return httpx.URL(url).host
    except httpx.InvalidURL:
        return url
