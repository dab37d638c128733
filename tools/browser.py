"""
tools/browser.py — One headless Chromium per process, launched on first use.

THE CORE CONCEPT: a shared, lazily-launched engine
  Launching Chromium costs a second or more and ~100MB of RAM. The heavy
  fetch path needs a browser only for the minority of pages that render
  with JavaScript, so the engine is started the first time one is needed
  and then reused by every later fetch.

CONCURRENT FIRST USE:
  Ten fetches can hit the heavy path in the same event-loop tick. They must
  not launch ten browsers. acquire() stores the in-flight launch as a task;
  every caller awaits that same task. If the launch fails, the task is
  cleared so a later acquire() can try again.

CRASHES:
  Chromium can die under load. acquire() checks is_connected() before
  handing out the shared browser. A disconnected one is dropped and its
  driver stopped before a fresh launch goes through the same shared task.

OWNERSHIP:
  The browser belongs to BrowserHandle. Pages belong to the fetch that opened
  them — see ContentFetcher._heavy_fetch(), which closes its page on every
  exit path.

USAGE:
  from tools.browser import get_browser_handle, shutdown_browser

  browser = await get_browser_handle().acquire()
  page = await browser.new_page()
  ...
  await shutdown_browser()      # at process exit
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)

Launcher = Callable[[], Awaitable[Any]]


class BrowserHandle:
    """
    Lifecycle owner for one headless browser.

    acquire()  → launch once, then return the same browser
    shutdown() → close the browser and the Playwright driver
    """

    def __init__(self, *, headless: bool = True, launcher: Launcher | None = None) -> None:
        self._headless = headless
        self._launcher = launcher
        self._launch_task: asyncio.Task | None = None
        self._playwright = None
        self._browser = None

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def acquire(self):
        """
        Return the shared browser, launching it on first call.

        Concurrent first callers share one launch attempt. A failed launch
        propagates to every waiting caller and is forgotten, so the next
        acquire() starts a fresh attempt. A browser that has crashed or
        disconnected is discarded and relaunched the same way.

        Raises RuntimeError if shutdown() ran while this call was waiting
        on the launch.
        """
        if self._browser is not None:
            if self._browser.is_connected():
                return self._browser
            await self._discard_disconnected()

        if self._launch_task is None:
            self._launch_task = asyncio.ensure_future(self._launch())
        task = self._launch_task

        try:
            # shield: one caller being cancelled must not cancel everyone's launch
            browser = await asyncio.shield(task)
        except Exception:
            if self._launch_task is task:
                self._launch_task = None
            raise

        if self._launch_task is not task:
            raise RuntimeError("Browser was shut down while launching")

        self._browser = browser
        return browser

    async def _discard_disconnected(self) -> None:
        logger.warning("Headless browser disconnected, relaunching")
        self._browser = None
        self._launch_task = None
        playwright, self._playwright = self._playwright, None
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.warning("Failed to stop Playwright driver: %s: %s", type(e).__name__, e)

    async def _launch(self):
        logger.info("Launching headless browser...")
        if self._launcher is not None:
            browser = await self._launcher()
        else:
            self._playwright = await async_playwright().start()
            try:
                browser = await self._playwright.chromium.launch(headless=self._headless)
            except Exception:
                await self._playwright.stop()
                self._playwright = None
                raise
        logger.info("Headless browser launched")
        return browser

    async def shutdown(self) -> None:
        """Close the browser (if one was launched) and reset the handle."""
        task, self._launch_task = self._launch_task, None
        browser, self._browser = self._browser, None

        if browser is None and task is not None:
            try:
                browser = await task
            except Exception:
                browser = None

        if browser is not None:
            try:
                await browser.close()
            except Exception as e:
                logger.warning("Failed to close browser: %s: %s", type(e).__name__, e)

        if self._playwright is not None:
            playwright, self._playwright = self._playwright, None
            await playwright.stop()
            logger.info("Headless browser shut down")


# ── Process-wide handle ───────────────────────────────────────────────────────

_shared_handle: BrowserHandle | None = None


def get_browser_handle() -> BrowserHandle:
    """Return the process-wide BrowserHandle, creating it on first call."""
    global _shared_handle
    if _shared_handle is None:
        from config import settings
        _shared_handle = BrowserHandle(headless=settings.browser_headless)
    return _shared_handle


async def shutdown_browser() -> None:
    """Shut down the process-wide browser if one was ever created."""
    global _shared_handle
    if _shared_handle is not None:
        handle, _shared_handle = _shared_handle, None
        await handle.shutdown()
