"""
tests/unit/test_fetch.py — Unit tests for tools/fetch.py

What we test (no real HTTP, no real browser):
  - FetchOutcome — success / word_count shape
  - Fast tier: sufficient HTML is used directly, the browser is never touched
  - Fallback: short content, "JavaScript required", non-2xx, network error
    and timeout all go to the heavy tier
  - Heavy tier: rendered text is collapsed, the page is always closed,
    a navigation timeout still reads what rendered
  - Both tiers failing → FAILED outcome, never an exception
  - Unsafe URLs are refused without any request
  - Optional trafilatura extractor
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from config import Settings
from tools.browser import BrowserHandle
from tools.fetch import ContentFetcher, FetchMethod, FetchOutcome, _failed

ARTICLE_TEXT = (
    "Global average surface temperature has risen by about 1.1 degrees Celsius "
    "since the late nineteenth century. Most of the warming has occurred in the "
    "past forty years, with the seven most recent years being the warmest on record."
)
ARTICLE_HTML = f"""
<html><head><title>Climate</title><script>trackVisit();</script></head>
<body>
  <nav>Home | News | Science</nav>
  <article><p>{ARTICLE_TEXT}</p></article>
  <footer>Copyright 2025</footer>
</body></html>
"""
RENDERED_TEXT = "Rendered   article\n\n text from the live DOM. " * 10


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def html_response(html: str, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text=html, headers={"content-type": "text/html"})
    return handler


def make_browser(rendered: str = RENDERED_TEXT, goto_error=None, evaluate_error=None):
    """A BrowserHandle whose launcher returns a mock browser with one mock page."""
    page = AsyncMock()
    page.evaluate.return_value = rendered
    if goto_error is not None:
        page.goto.side_effect = goto_error
    if evaluate_error is not None:
        page.evaluate.side_effect = evaluate_error

    browser = MagicMock()
    browser.new_page = AsyncMock(return_value=page)
    browser.close = AsyncMock()

    launches = []

    async def launcher():
        launches.append(1)
        await asyncio.sleep(0)
        return browser

    handle = BrowserHandle(launcher=launcher)
    handle.launches = launches
    return handle, browser, page


def make_fetcher(handler, handle=None, **kwargs) -> ContentFetcher:
    if handle is None:
        handle, _, _ = make_browser()
    return ContentFetcher(browser=handle, http_client=make_client(handler), **kwargs)


# ── FetchOutcome ──────────────────────────────────────────────────────────────

class TestFetchOutcome:
    def test_word_count_counts_words(self):
        outcome = FetchOutcome(url="https://a.com", text="one two three", method=FetchMethod.FAST)
        assert outcome.word_count == 3

    def test_word_count_zero_when_failed(self):
        assert _failed("https://a.com", "boom").word_count == 0

    def test_failed_helper_shape(self):
        outcome = _failed("https://a.com", "boom")
        assert outcome.success is False
        assert outcome.text is None
        assert outcome.method == FetchMethod.FAILED
        assert outcome.error == "boom"

    def test_success_when_text_present(self):
        outcome = FetchOutcome(url="https://a.com", text="x", method=FetchMethod.HEAVY)
        assert outcome.success is True


# ── Fast tier ─────────────────────────────────────────────────────────────────

class TestFastFetch:
    @pytest.mark.asyncio
    async def test_sufficient_html_uses_fast_result(self):
        handle, browser, _ = make_browser()
        fetcher = make_fetcher(html_response(ARTICLE_HTML), handle)

        outcome = await fetcher.fetch("https://example.com/climate")

        assert outcome.method == FetchMethod.FAST
        assert outcome.text == ARTICLE_TEXT
        assert handle.launches == []
        browser.new_page.assert_not_called()

    @pytest.mark.asyncio
    async def test_fast_text_excludes_navigation_and_footer(self):
        fetcher = make_fetcher(html_response(ARTICLE_HTML))
        outcome = await fetcher.fetch("https://example.com/climate")
        assert "Home | News" not in outcome.text
        assert "Copyright" not in outcome.text

    @pytest.mark.asyncio
    async def test_sends_browser_like_user_agent(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers.get("user-agent", "")
            return httpx.Response(200, text=ARTICLE_HTML)

        await make_fetcher(handler).fetch("https://example.com/climate")
        assert "Mozilla/5.0" in seen["ua"]


# ── Fallback to heavy tier ────────────────────────────────────────────────────

class TestFallbackToHeavy:
    @pytest.mark.asyncio
    async def test_short_content_falls_back(self):
        handle, _, page = make_browser()
        fetcher = make_fetcher(html_response("<body><p>Loading...</p></body>"), handle)

        outcome = await fetcher.fetch("https://spa.example.com")

        assert outcome.method == FetchMethod.HEAVY
        assert outcome.text.startswith("Rendered article text from the live DOM.")
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_javascript_required_notice_falls_back(self):
        html = "<body><p>You need to enable JavaScript to run this app. " + "x " * 200 + "</p></body>"
        handle, _, _ = make_browser()
        outcome = await make_fetcher(html_response(html), handle).fetch("https://spa.example.com")
        assert outcome.method == FetchMethod.HEAVY

    @pytest.mark.asyncio
    async def test_non_2xx_falls_back(self):
        handle, _, _ = make_browser()
        outcome = await make_fetcher(html_response(ARTICLE_HTML, status=403), handle).fetch(
            "https://blocked.example.com"
        )
        assert outcome.method == FetchMethod.HEAVY

    @pytest.mark.asyncio
    async def test_network_error_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        handle, _, _ = make_browser()
        outcome = await make_fetcher(handler, handle).fetch("https://down.example.com")
        assert outcome.method == FetchMethod.HEAVY

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        handle, _, _ = make_browser()
        outcome = await make_fetcher(handler, handle).fetch("https://slow.example.com")
        assert outcome.method == FetchMethod.HEAVY

    @pytest.mark.asyncio
    async def test_empty_body_falls_back(self):
        handle, _, _ = make_browser()
        outcome = await make_fetcher(html_response(""), handle).fetch("https://empty.example.com")
        assert outcome.method == FetchMethod.HEAVY


# ── Heavy tier ────────────────────────────────────────────────────────────────

class TestHeavyFetch:
    @pytest.mark.asyncio
    async def test_rendered_whitespace_collapsed(self):
        handle, _, _ = make_browser(rendered="line one\n\n\n   line two\t\tend")
        outcome = await make_fetcher(html_response(""), handle).fetch("https://spa.example.com")
        assert outcome.text == "line one line two end"

    @pytest.mark.asyncio
    async def test_navigation_uses_network_idle_and_millisecond_timeout(self):
        handle, _, page = make_browser()
        fetcher = make_fetcher(html_response(""), handle)

        await fetcher.fetch("https://spa.example.com", heavy_timeout=2)

        page.goto.assert_awaited_once_with(
            "https://spa.example.com", wait_until="networkidle", timeout=2000
        )

    @pytest.mark.asyncio
    async def test_navigation_timeout_still_reads_rendered_text(self):
        handle, _, page = make_browser(goto_error=PlaywrightTimeoutError("Timeout 20000ms exceeded"))
        outcome = await make_fetcher(html_response(""), handle).fetch("https://spa.example.com")

        assert outcome.method == FetchMethod.HEAVY
        page.evaluate.assert_awaited_once()
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_render_is_failure(self):
        handle, _, page = make_browser(rendered="   ")
        outcome = await make_fetcher(html_response(""), handle).fetch("https://spa.example.com")

        assert outcome.method == FetchMethod.FAILED
        assert outcome.text is None
        assert outcome.error
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_closed_when_evaluate_raises(self):
        handle, _, page = make_browser(evaluate_error=RuntimeError("Target closed"))
        outcome = await make_fetcher(html_response(""), handle).fetch("https://spa.example.com")

        assert outcome.method == FetchMethod.FAILED
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_close_error_is_not_raised(self):
        handle, _, page = make_browser()
        page.close.side_effect = RuntimeError("already closed")
        outcome = await make_fetcher(html_response(""), handle).fetch("https://spa.example.com")
        assert outcome.method == FetchMethod.HEAVY

    @pytest.mark.asyncio
    async def test_browser_launch_failure_is_failed_outcome(self):
        async def launcher():
            raise RuntimeError("Executable doesn't exist")

        handle = BrowserHandle(launcher=launcher)
        outcome = await make_fetcher(html_response(""), handle).fetch("https://spa.example.com")

        assert outcome.method == FetchMethod.FAILED

    @pytest.mark.asyncio
    async def test_concurrent_heavy_fetches_launch_one_browser(self):
        handle, browser, _ = make_browser()
        fetcher = make_fetcher(html_response(""), handle)

        outcomes = await asyncio.gather(
            *(fetcher.fetch(f"https://spa.example.com/{i}") for i in range(5))
        )

        assert all(o.method == FetchMethod.HEAVY for o in outcomes)
        assert handle.launches == [1]
        assert browser.new_page.await_count == 5


# ── URL safety ────────────────────────────────────────────────────────────────

class TestUnsafeUrls:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [
        "file:///etc/passwd",
        "http://localhost:8080/admin",
        "http://192.168.1.1/",
        "",
    ])
    async def test_unsafe_url_never_fetched(self, url):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=ARTICLE_HTML)

        handle, browser, _ = make_browser()
        outcome = await make_fetcher(handler, handle).fetch(url)

        assert outcome.method == FetchMethod.FAILED
        assert requests == []
        browser.new_page.assert_not_called()

    def test_url_check_comes_from_tools_layer(self):
        import tools.fetch
        import tools.urls
        assert tools.fetch.is_safe_url is tools.urls.is_safe_url


# ── Extractor selection ───────────────────────────────────────────────────────

class TestExtractorSelection:
    @pytest.mark.asyncio
    async def test_trafilatura_result_used_when_configured(self):
        main_text = "Main article body. " * 20
        fetcher = make_fetcher(html_response(ARTICLE_HTML), extractor="trafilatura")
        with patch("tools.fetch.extract_main_content", return_value=main_text.strip()):
            outcome = await fetcher.fetch("https://example.com/climate")
        assert outcome.text == main_text.strip()

    @pytest.mark.asyncio
    async def test_trafilatura_empty_falls_back_to_markup_stripping(self):
        fetcher = make_fetcher(html_response(ARTICLE_HTML), extractor="trafilatura")
        with patch("tools.fetch.extract_main_content", return_value=""):
            outcome = await fetcher.fetch("https://example.com/climate")
        assert outcome.text == ARTICLE_TEXT

    @pytest.mark.asyncio
    async def test_soup_extractor_never_calls_trafilatura(self):
        fetcher = make_fetcher(html_response(ARTICLE_HTML))
        with patch("tools.fetch.extract_main_content") as mock_extract:
            await fetcher.fetch("https://example.com/climate")
        mock_extract.assert_not_called()


# ── from_settings ─────────────────────────────────────────────────────────────

class TestFromSettings:
    @pytest.mark.asyncio
    async def test_timeouts_from_settings_reach_the_browser(self):
        s = Settings(fast_fetch_timeout_seconds=1.5, heavy_fetch_timeout_seconds=7.0)
        handle, _, page = make_browser()
        fetcher = ContentFetcher.from_settings(
            s, browser=handle, http_client=make_client(html_response(""))
        )

        await fetcher.fetch("https://spa.example.com")

        assert page.goto.await_args.kwargs["timeout"] == 7000
