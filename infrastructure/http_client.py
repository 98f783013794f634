"""Shared async HTTP client with configurable timeout, base URL and headers."""

from typing import Any, Mapping, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient.

    One instance per external service keeps timeouts and default headers
    (e.g. bearer auth) independently configurable.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        base_url: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout,
            base_url=base_url,
            headers=dict(headers or {}),
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
