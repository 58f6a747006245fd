"""HTTP fetching for listing and detail pages."""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx
import structlog

from ..config import FetchConfig
from ..errors import FetchError, error_message

FetchFunc = Callable[[str], Awaitable[str]]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class Fetcher:
    """Retrieve page text over a shared ``httpx.AsyncClient``.

    Any 4xx or 5xx status is raised as :class:`FetchError` alongside transport
    failures. No retry is attempted here; the pipeline decides how failures
    propagate.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.logger = logger or structlog.get_logger("feed_crawler.fetcher")
        headers = {"User-Agent": self.config.user_agent or DEFAULT_USER_AGENT}
        headers.update(self.config.headers)
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.config.timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str) -> str:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            reason = error_message(exc)
            self.logger.warning("fetch_error", url=url, error=reason)
            raise FetchError(
                f"Request failed: {url}", {"error": reason, "type": type(exc).__name__}
            ) from exc
        if self._is_failure(response):
            self.logger.warning("fetch_bad_status", url=url, status=response.status_code)
            raise FetchError(f"Unexpected status {response.status_code}", {"url": url})
        return response.text

    @staticmethod
    def _is_failure(response: Any) -> bool:
        status_code = getattr(response, "status_code", 0)
        return status_code >= 400


__all__ = ["DEFAULT_USER_AGENT", "FetchFunc", "Fetcher"]
