"""Single-page website fetch.

One GET, no link following. Anything other than a 2xx HTML response is a FetchError.
"""

import logging
import time
from urllib.parse import urlparse

import httpx

from app.config import settings
from app.errors import FetchError

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def normalize_url(url: str) -> str:
    """Complete a missing scheme and reject anything that is not http(s)."""
    url = url.strip()
    if "://" not in url:
        url = f"https://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise FetchError(f"unsupported URL: {url[:200]}")
    return url


class WebPageClient:
    """Async client that fetches exactly one HTML page."""

    def __init__(self, timeout: int | None = None, user_agent: str | None = None):
        self.timeout = timeout or settings.fetch_timeout_seconds
        self.user_agent = user_agent or settings.fetch_user_agent

    async def fetch(self, url: str) -> str:
        """Return the page HTML or raise FetchError."""
        url = normalize_url(url)
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.5",
            "Accept-Language": "de,en;q=0.8",
        }

        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                resp = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Page fetch timeout | %dms | url=%s", elapsed_ms, url[:120])
            raise FetchError(f"timed out after {self.timeout}s", cause=e) from e
        except httpx.HTTPError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("Page fetch error | %dms | url=%s | %s", elapsed_ms, url[:120], str(e)[:200])
            raise FetchError(str(e)[:200] or type(e).__name__, cause=e) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if not resp.is_success:
            logger.warning("Page fetch | status=%d | %dms | url=%s", resp.status_code, elapsed_ms, url[:120])
            raise FetchError(f"HTTP {resp.status_code}")

        content_type = resp.headers.get("content-type", "").lower()
        if not any(ct in content_type for ct in HTML_CONTENT_TYPES):
            logger.warning("Page fetch | content-type=%s | url=%s", content_type[:60], url[:120])
            raise FetchError(f"unsupported content type: {content_type or 'unknown'}")

        logger.info(
            "Page fetch OK | status=%d | bytes=%d | %dms | url=%s",
            resp.status_code, len(resp.content), elapsed_ms, url[:120],
        )
        return resp.text
