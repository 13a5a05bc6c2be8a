"""HTTP transport for the archive backend.

Envelopes are POSTed as JSON to ``<base_url>/<function name>``. There is no
request timeout: uploads of large scans over slow links must not be cut off.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from journey_archive.config import BackendConfig
from journey_archive.errors import TransportError

logger = logging.getLogger(__name__)


class HttpTransport:
    """Sends envelopes with a shared ``httpx.AsyncClient``.

    A response body that is a JSON object is returned whatever the status
    code, so a ``{"success": false}`` body sent with a 4xx status still maps
    to an ApplicationError upstream. Anything else is a TransportError.

    Example:
        >>> async with HttpTransport("https://archive.example.org/functions/v1") as transport:
        ...     body = await transport.send("archive-profile", {"action": "...", "payload": {}})
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=None,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: BackendConfig) -> "HttpTransport":
        if not config.base_url:
            raise ValueError("backend.base_url is not configured")
        api_key = config.api_key.get_secret_value() if config.api_key else None
        return cls(config.base_url, api_key=api_key)

    async def send(self, function: str, request: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(f"/{function}", json=request)
        except httpx.HTTPError as e:
            logger.warning(f"Request to {function} failed: {e}")
            raise TransportError(f"Request to {function} failed: {e}", cause=e) from e

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                f"{function} returned a non-JSON response (HTTP {response.status_code})",
                cause=e,
            ) from e

        if not isinstance(body, dict):
            raise TransportError(f"{function} returned an unexpected body (HTTP {response.status_code})")
        return body

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
