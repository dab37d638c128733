"""
tools/fetch.py — Resolve one URL to plain text, fast first, browser second.

TWO-TIER FETCHING STRATEGY:
  The web is messy. Most pages are server-rendered HTML that a plain GET
  returns in full. Some are JavaScript apps whose HTML is an empty shell.
  We handle both with a waterfall:

  Tier 1 — fast fetch (httpx)
    One GET with a browser-like User-Agent and a short timeout
    (settings.fast_fetch_timeout_seconds). Non-content markup is stripped
    and the body text collapsed. If the text passes is_content_sufficient()
    it is returned immediately — the common case.

  Tier 2 — heavy fetch (Playwright)
    Used when tier 1 failed outright or returned too little text. Opens a
    page in the shared headless browser (tools/browser.py), navigates until
    the network goes quiet or heavy_fetch_timeout_seconds passes, removes
    the same non-content regions from the live DOM and reads the rendered
    text. The page is closed on every exit path.

  If both tiers fail the URL is done for this request: no further retries.

NEVER RAISES:
  fetch() always returns a FetchOutcome. method="failed" with text=None is
  a normal result that downstream stages handle, not an exception.

USAGE:
  from tools.fetch import ContentFetcher

  fetcher = ContentFetcher()
  outcome = await fetcher.fetch("https://example.com/article")
  if outcome.success:
      print(outcome.method, outcome.text[:500])   # "fast" or "heavy"
  else:
      print(f"Failed: {outcome.error}")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import httpx
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tools.browser import BrowserHandle, get_browser_handle
from tools.extract import (
    DEFAULT_MIN_CHARS,
    collapse_whitespace,
    extract_main_content,
    html_to_text,
    is_content_sufficient,
)
from tools.urls import is_safe_url

logger = logging.getLogger(__name__)

FAST_FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

HEAVY_FETCH_USER_AGENT = FAST_FETCH_HEADERS["User-Agent"]

# Runs inside the page: drop the same regions html_to_text() drops, read innerText.
RENDERED_TEXT_SCRIPT = """
() => {
    document
        .querySelectorAll('script, style, noscript, link[rel="stylesheet"], header, footer, nav')
        .forEach((el) => el.remove());
    return document.body ? document.body.innerText : "";
}
"""


# ── Result type ────────────────────────────────────────────────────────────────

class FetchMethod(str, Enum):
    FAST = "fast"
    HEAVY = "heavy"
    FAILED = "failed"


@dataclass
class FetchOutcome:
    """
    The outcome of fetching one URL.

    method tells you which tier produced the text:
      "fast"   — plain HTTP GET + markup stripping
      "heavy"  — headless browser render
      "failed" — both tiers failed; text is None and error explains why
    """
    url: str
    text: str | None
    method: FetchMethod
    error: str | None = None
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def success(self) -> bool:
        return self.text is not None

    @property
    def word_count(self) -> int:
        return len(self.text.split()) if self.text else 0


# ── Fetcher ───────────────────────────────────────────────────────────────────

class ContentFetcher:
    """
    Hybrid fast/heavy page fetcher.

    http_client and browser can be injected; by default a fresh
    httpx.AsyncClient is used per fast fetch and the process-wide
    BrowserHandle serves the heavy path.
    """

    def __init__(
        self,
        *,
        browser: BrowserHandle | None = None,
        http_client: httpx.AsyncClient | None = None,
        fast_timeout: float = 5.0,
        heavy_timeout: float = 20.0,
        min_content_chars: int = DEFAULT_MIN_CHARS,
        extractor: str = "soup",
    ) -> None:
        self._browser = browser
        self._http_client = http_client
        self._fast_timeout = fast_timeout
        self._heavy_timeout = heavy_timeout
        self._min_content_chars = min_content_chars
        self._extractor = extractor

    @classmethod
    def from_settings(cls, settings, **overrides) -> "ContentFetcher":
        kwargs = dict(
            fast_timeout=settings.fast_fetch_timeout_seconds,
            heavy_timeout=settings.heavy_fetch_timeout_seconds,
            min_content_chars=settings.min_content_chars,
            extractor=settings.fast_extractor,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    async def fetch(
        self,
        url: str,
        fast_timeout: float | None = None,
        heavy_timeout: float | None = None,
    ) -> FetchOutcome:
        """
        Fetch url and return its text, trying the fast tier before the heavy one.

        Timeouts are in seconds and default to the values given at construction.
        Never raises.
        """
        if not is_safe_url(url):
            logger.warning("Refusing to fetch unsafe URL: %r", url)
            return _failed(url, "Blocked unsafe URL")

        fast_timeout = self._fast_timeout if fast_timeout is None else fast_timeout
        heavy_timeout = self._heavy_timeout if heavy_timeout is None else heavy_timeout

        try:
            html = await self._fast_fetch(url, fast_timeout)
            if html is not None:
                text = self._extract(html, url)
                if is_content_sufficient(text, self._min_content_chars):
                    logger.info("Using fast fetch result for %s (%d chars)", url, len(text))
                    return FetchOutcome(url=url, text=text, method=FetchMethod.FAST)
                logger.info("Fast fetch content insufficient for %s — falling back", url)
            else:
                logger.info("Fast fetch failed for %s — falling back", url)

            text = await self._heavy_fetch(url, heavy_timeout)
        except Exception as e:
            logger.error("Unexpected fetch error for %s: %s: %s", url, type(e).__name__, e)
            return _failed(url, f"Unexpected error: {type(e).__name__}: {e}")

        if text:
            logger.info("Using heavy fetch result for %s (%d chars)", url, len(text))
            return FetchOutcome(url=url, text=text, method=FetchMethod.HEAVY)

        logger.error("All fetch methods failed for %s", url)
        return _failed(url, "Fast and heavy fetch both failed")

    async def aclose(self) -> None:
        """Close an injected HTTP client. The shared browser is left running."""
        if self._http_client is not None:
            await self._http_client.aclose()

    # ── Tier 1: fast fetch ────────────────────────────────────────────────────

    async def _fast_fetch(self, url: str, timeout: float) -> str | None:
        """
        GET the URL. Returns the response body, or None on any network error,
        non-2xx status, or empty body.
        """
        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, headers=FAST_FETCH_HEADERS, timeout=timeout, follow_redirects=True
                )
            else:
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=FAST_FETCH_HEADERS)
        except httpx.TimeoutException:
            logger.warning("[fast] Timeout after %ss for %s", timeout, url)
            return None
        except Exception as e:
            logger.warning("[fast] Error for %s: %s: %s", url, type(e).__name__, e)
            return None

        if not 200 <= response.status_code < 300:
            logger.warning("[fast] HTTP %d for %s", response.status_code, url)
            return None

        body = response.text
        if not body:
            logger.warning("[fast] Empty body for %s", url)
            return None

        return body

    def _extract(self, html: str, url: str) -> str | None:
        if self._extractor == "trafilatura":
            text = extract_main_content(html, url)
            if text:
                return text
        return html_to_text(html)

    # ── Tier 2: heavy fetch ───────────────────────────────────────────────────

    async def _heavy_fetch(self, url: str, timeout: float) -> str | None:
        """
        Render the page in the shared browser and return its visible text.

        A navigation timeout does not discard the page: whatever rendered
        before the deadline is read. Returns None on any other failure.
        """
        logger.info("[heavy] Rendering %s", url)
        handle = self._browser or get_browser_handle()
        page = None
        try:
            browser = await handle.acquire()
            page = await browser.new_page(user_agent=HEAVY_FETCH_USER_AGENT)
            try:
                await page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
            except PlaywrightTimeoutError:
                logger.warning("[heavy] Network did not settle within %ss for %s", timeout, url)

            rendered = await page.evaluate(RENDERED_TEXT_SCRIPT)
            return collapse_whitespace(rendered or "") or None

        except Exception as e:
            logger.error("[heavy] Error for %s: %s: %s", url, type(e).__name__, e)
            return None

        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning("[heavy] Failed to close page for %s: %s", url, e)


# ── Private helpers ────────────────────────────────────────────────────────────

def _failed(url: str, error: str) -> FetchOutcome:
    """Return a failed FetchOutcome. Never raises."""
    return FetchOutcome(url=url, text=None, method=FetchMethod.FAILED, error=error)
