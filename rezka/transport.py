"""HTTP transport to the provider.

Documents and AJAX calls go to ``Config.base_url`` (through the proxy when
configured); the cookie jar of the shared client carries the session.
Every ``httpx`` failure is re-raised as ``TransportError``.
"""

import logging
import time
from typing import Any

import httpx
from bs4 import BeautifulSoup

from rezka.config import Config
from rezka.errors import TransportError

logger = logging.getLogger(__name__)

AJAX_PATH = "/ajax/get_cdn_series/"


def timestamp_ms() -> int:
    """Cache-busting value appended to AJAX calls."""
    return int(time.time() * 1000)


class Transport:
    """Thin async wrapper around a shared ``httpx.AsyncClient``."""

    def __init__(self, config: Config, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout,
            follow_redirects=True,
            headers={"User-Agent": config.user_agent},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, url)
        try:
            res = await self._client.request(method, url, **kwargs)
            res.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        return res

    async def fetch_document(self, path: str, params: dict[str, str] | None = None) -> BeautifulSoup:
        """GET an HTML page and parse it."""
        res = await self._send("GET", path, params=params)
        return BeautifulSoup(res.text, "html.parser")

    async def fetch_text(self, path: str) -> str:
        res = await self._send("GET", path)
        return res.text

    async def post_form(self, path: str, form: dict[str, str]) -> dict[str, Any]:
        """POST form fields to an AJAX endpoint and decode the JSON envelope."""
        res = await self._send(
            "POST",
            path,
            params={"t": str(timestamp_ms())},
            data=form,
            headers={"X-Requested-With": "XMLHttpRequest"},
        )
        try:
            data = res.json()
        except ValueError as e:
            raise TransportError(f"POST {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise TransportError(f"POST {path} returned unexpected payload")
        return data

    async def content_length(self, url: str) -> int:
        """HEAD ``url`` and read its size; 0 when the header is absent or unreadable."""
        res = await self._send("HEAD", url)
        raw = res.headers.get("content-length") or "0"
        try:
            return max(int(raw), 0)
        except ValueError:
            logger.debug("Ignoring content-length %r of %s", raw, url)
            return 0
