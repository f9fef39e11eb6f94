"""
Owns the shared Playwright browser used for every render.

This module provides the `BrowserSession` class. One session holds one
Chromium instance for the life of the process: it is launched lazily on first
use, concurrent first callers all await the same launch, and each render gets
its own isolated browser context that is closed when the render ends.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, TYPE_CHECKING

from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright

from prerender_gateway.core.exceptions import RendererError
from prerender_gateway.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_gateway.core.config import ConfigurationManager

logger = get_logger(__name__)


class BrowserSession:
    """
    Lazily launched, process-wide Chromium handle.

    Attributes:
        headless (bool): Whether Chromium runs headless.
        launch_args (List[str]): Extra command line flags for Chromium.
        user_agent (str): User agent applied to every page context.
    """
    DEFAULT_USER_AGENT = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123 Safari/537.36"
    )
    # Flags needed to run Chromium as an unprivileged user inside a container.
    DEFAULT_LAUNCH_ARGS = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-web-security",
    ]

    def __init__(self, config: Optional['ConfigurationManager'] = None):
        """
        Initializes the session settings. Nothing is launched here.

        Args:
            config (Optional[ConfigurationManager]): Source of `render.browser.*`
                and `render.user_agent`. If None, defaults are used.
        """
        if config:
            self.headless = bool(config.get("render.browser.headless", True))
            self.launch_args: List[str] = list(config.get("render.browser.launch_args", self.DEFAULT_LAUNCH_ARGS))
            self.user_agent = config.get("render.user_agent") or self.DEFAULT_USER_AGENT
        else:
            self.headless = True
            self.launch_args = list(self.DEFAULT_LAUNCH_ARGS)
            self.user_agent = self.DEFAULT_USER_AGENT

        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self._launch_task: Optional["asyncio.Task[Browser]"] = None

    @property
    def is_launched(self) -> bool:
        return self.browser is not None

    async def _launch(self) -> Browser:
        if self.playwright is not None:
            # Left over from a browser that disconnected.
            stale, self.playwright = self.playwright, None
            try:
                await stale.stop()
            except Exception as e:
                logger.warning(f"Error stopping stale Playwright instance: {e}")
        logger.info(f"Launching shared Chromium browser (headless={self.headless}).")
        try:
            playwright = await async_playwright().start()
        except Exception as e:
            logger.error(f"Failed to start Playwright: {e}", exc_info=True)
            raise RendererError(f"Failed to start Playwright: {e}")
        try:
            browser = await playwright.chromium.launch(headless=self.headless, args=self.launch_args)
        except Exception as e:
            logger.error(f"Failed to launch Chromium: {e}", exc_info=True)
            try:
                await playwright.stop()
            except Exception as stop_e:
                logger.error(f"Error stopping Playwright after failed launch: {stop_e}", exc_info=True)
            raise RendererError(f"Failed to launch browser: {e}")
        browser.on("disconnected", self._on_disconnected)
        self.playwright = playwright
        self.browser = browser
        logger.info("Chromium browser launched successfully.")
        return browser

    def _on_disconnected(self, browser: Browser) -> None:
        """Forgets a crashed or closed browser so the next `acquire` relaunches it."""
        if self.browser is not browser:
            return
        logger.warning("Chromium browser disconnected; it will be relaunched on the next render.")
        self.browser = None
        self._launch_task = None

    async def acquire(self) -> Browser:
        """
        Returns the shared browser, launching it on first use.

        Overlapping first calls await one shared launch task rather than starting
        their own. The launch is shielded, so a cancelled caller does not abort it
        for everyone else. A failed launch is forgotten so the next call retries.

        Raises:
            RendererError: If Playwright cannot start or Chromium cannot launch.
        """
        if self.browser is not None:
            return self.browser
        task = self._launch_task
        if task is None:
            task = asyncio.ensure_future(self._launch())
            self._launch_task = task
        try:
            return await asyncio.shield(task)
        except RendererError:
            if self._launch_task is task:
                self._launch_task = None
            raise

    @asynccontextmanager
    async def page_context(self) -> AsyncIterator[BrowserContext]:
        """
        Yields a fresh, isolated browser context and always closes it afterwards.

        Close failures are logged and suppressed so they never mask the render's
        own outcome.
        """
        browser = await self.acquire()
        context = await browser.new_context(user_agent=self.user_agent)
        try:
            yield context
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")

    async def aclose(self) -> None:
        """Closes the browser and stops Playwright. Only used at process shutdown."""
        if self._launch_task is not None and not self._launch_task.done():
            try:
                await self._launch_task
            except RendererError:
                pass
        browser, self.browser = self.browser, None
        if browser:
            try:
                await browser.close()
                logger.info("Browser closed successfully.")
            except Exception as e:
                logger.error(f"Error closing browser: {e}", exc_info=True)
        if self.playwright:
            try:
                await self.playwright.stop()
                logger.info("Playwright stopped successfully.")
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}", exc_info=True)

        self.browser = None
        self.playwright = None
        self._launch_task = None
