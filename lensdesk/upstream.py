"""
Async client for the upstream REST API.

The console never owns data: every read and write goes to the upstream API
with the browser's credential cookies attached.
"""
import logging
from typing import Any, Iterable, Optional

import httpx
from fastapi import Request

from .config import UPSTREAM_API_URL, UPSTREAM_TIMEOUT
from .errors import UpstreamError

logger = logging.getLogger(__name__)

# (filename, content, content_type) triples, as accepted by httpx multipart
FilePart = tuple[str, bytes, str]


def _error_message(response: httpx.Response) -> str:
    """Extract the upstream error text, falling back to the status line"""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for field in ("error", "message", "detail"):
            if body.get(field):
                return str(body[field])
    return f"HTTP {response.status_code}"


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    if "json" not in response.headers.get("content-type", ""):
        return response.text
    return response.json()


class UpstreamClient:
    """Thin wrapper around httpx.AsyncClient that raises UpstreamError on failure"""

    def __init__(
        self,
        cookies: Optional[dict] = None,
        base_url: str = UPSTREAM_API_URL,
        timeout: float = UPSTREAM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.cookies = dict(cookies or {})
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            cookies=self.cookies,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request and return the raw response, raising on non-2xx"""
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ Upstream {method} {path} failed: {e}")
            raise UpstreamError("Er is een onbekende fout opgetreden", 502) from e

        if response.is_error:
            message = _error_message(response)
            logger.warning(f"⚠️ Upstream {method} {path} -> {response.status_code}: {message}")
            status_code = response.status_code if response.status_code < 500 else 502
            raise UpstreamError(message, status_code)

        logger.debug(f"✅ Upstream {method} {path} -> {response.status_code}")
        return response

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        response = await self.send("GET", path, params=_clean_params(params))
        return _decode(response)

    async def get_raw(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        return await self.send("GET", path, params=_clean_params(params))

    async def post(self, path: str, json: Any = None) -> Any:
        response = await self.send("POST", path, json=json)
        return _decode(response)

    async def post_raw(self, path: str, json: Any = None) -> httpx.Response:
        return await self.send("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        response = await self.send("PATCH", path, json=json)
        return _decode(response)

    async def delete(self, path: str, params: Optional[dict] = None, json: Any = None) -> Any:
        response = await self.send("DELETE", path, params=_clean_params(params), json=json)
        return _decode(response)

    async def upload(self, path: str, files: Iterable[FilePart], field: str = "files") -> Any:
        """POST a multipart body with one `field` part per file"""
        parts = [(field, f) for f in files]
        response = await self.send("POST", path, files=parts)
        return _decode(response)


def _clean_params(params: Optional[dict]) -> Optional[dict]:
    """Drop unset query parameters instead of sending them empty"""
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ""}


def get_upstream(request: Request) -> UpstreamClient:
    """FastAPI dependency: an upstream client carrying the caller's cookies"""
    return UpstreamClient(
        cookies=request.cookies,
        transport=getattr(request.app.state, "upstream_transport", None),
    )
