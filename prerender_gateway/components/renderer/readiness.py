"""
Decides when a client-side rendered page is complete enough to snapshot.

Third-party pages give no reliable "done" signal, so readiness is a heuristic
polled from the host side through the Playwright page API:

- the document has a non-empty title, or
- a `<meta name="description" content=...>` tag exists, or
- the content container selector matches at least one element, or
- the visible body text exceeds a minimum length, or
- the page set its ready flag (`window.__PRERENDER_READY__ = true`).

Every wait here is bounded and non-fatal: when a timeout elapses the snapshot
is taken from whatever the page holds at that point.
"""
import asyncio
from typing import Any, Dict, Optional, TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError, Page, TimeoutError as PlaywrightTimeoutError

from prerender_gateway.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_gateway.core.config import ConfigurationManager

logger = get_logger(__name__)

META_DESCRIPTION_SELECTOR = 'meta[name="description"][content]'
VISIBLE_TEXT_SCRIPT = "() => document.body ? document.body.innerText : ''"


class ReadinessDetector:
    """
    Waits for framework markers, nudges lazy loaders and polls the readiness signal.

    All durations are in milliseconds, matching the rest of the render settings.
    """
    DEFAULTS: Dict[str, Any] = {
        "framework_root_selector": "app-root, [ng-version], app",
        "marker_timeout_ms": 8000,
        "timeout_ms": 12000,
        "poll_interval_ms": 100,
        "min_text_length": 500,
        "content_selector": ".blocks-container > *",
        "ready_flag": "__PRERENDER_READY__",
        "nudge_pause_ms": 50,
        "settle_ms": 200,
    }

    def __init__(self, config: Optional['ConfigurationManager'] = None, **overrides: Any):
        """
        Args:
            config (Optional[ConfigurationManager]): Source of `render.readiness.*` settings.
            **overrides: Explicit values for any key of `DEFAULTS`; they win over configuration.
        """
        settings = dict(self.DEFAULTS)
        if config is not None:
            for key in self.DEFAULTS:
                value = config.get(f"render.readiness.{key}")
                if value is not None:
                    settings[key] = value
        unknown = set(overrides) - set(self.DEFAULTS)
        if unknown:
            raise TypeError(f"Unknown readiness settings: {sorted(unknown)}")
        settings.update(overrides)

        self.framework_root_selector: str = settings["framework_root_selector"]
        self.marker_timeout_ms = int(settings["marker_timeout_ms"])
        self.timeout_ms = int(settings["timeout_ms"])
        self.poll_interval_ms = int(settings["poll_interval_ms"])
        self.min_text_length = int(settings["min_text_length"])
        self.content_selector: str = settings["content_selector"]
        self.ready_flag: str = settings["ready_flag"]
        self.nudge_pause_ms = int(settings["nudge_pause_ms"])
        self.settle_ms = int(settings["settle_ms"])

    async def prepare(self, page: Page, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """
        Runs the full readiness sequence on a freshly navigated page.

        Returns:
            bool: Whether the readiness signal was observed before the timeout.
        """
        await self.wait_for_framework_root(page)
        await self.nudge_lazy_loaders(page)
        ready = await self.wait_until_ready(page, cancel_event=cancel_event)
        await asyncio.sleep(self.settle_ms / 1000)
        return ready

    async def wait_for_framework_root(self, page: Page) -> bool:
        """Waits briefly for a single-page-app root element. A timeout is not an error."""
        try:
            await page.wait_for_selector(self.framework_root_selector, timeout=self.marker_timeout_ms)
            return True
        except PlaywrightTimeoutError:
            logger.debug(f"No framework root matching '{self.framework_root_selector}' within {self.marker_timeout_ms}ms.")
            return False

    async def nudge_lazy_loaders(self, page: Page) -> None:
        """Scrolls down one pixel and back so intersection observers fire."""
        try:
            await page.evaluate("() => window.scrollTo(0, 1)")
            await asyncio.sleep(self.nudge_pause_ms / 1000)
            await page.evaluate("() => window.scrollTo(0, 0)")
        except PlaywrightError as e:
            logger.debug(f"Scroll nudge failed, continuing: {e}")

    async def is_ready(self, page: Page) -> bool:
        """Evaluates the readiness signal once, stopping at the first satisfied condition."""
        if (await page.title() or "").strip():
            return True
        if await page.locator(META_DESCRIPTION_SELECTOR).count() > 0:
            return True
        if await page.locator(self.content_selector).count() > 0:
            return True
        text = await page.evaluate(VISIBLE_TEXT_SCRIPT) or ""
        if len(" ".join(text.split())) > self.min_text_length:
            return True
        return await page.evaluate(f"() => window[{self.ready_flag!r}] === true") is True

    async def wait_until_ready(self, page: Page, timeout_ms: Optional[int] = None,
                               cancel_event: Optional[asyncio.Event] = None) -> bool:
        """
        Polls `is_ready` until it holds, the timeout elapses, or `cancel_event` is set.

        Browser errors raised while the page is still navigating (destroyed
        execution contexts and the like) count as "not ready yet".

        Returns:
            bool: True once the page is ready, False on timeout or cancellation.
        """
        timeout_s = (self.timeout_ms if timeout_ms is None else timeout_ms) / 1000
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.debug("Readiness wait cancelled.")
                return False
            try:
                if await self.is_ready(page):
                    return True
            except PlaywrightError as e:
                logger.debug(f"Readiness probe failed, retrying: {e}")

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(f"Readiness signal not observed within {timeout_s:.1f}s; snapshotting current state.")
                return False
            await asyncio.sleep(min(self.poll_interval_ms / 1000, remaining))
