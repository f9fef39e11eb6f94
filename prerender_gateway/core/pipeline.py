import asyncio
from typing import Optional, TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from prerender_gateway.components.cache.render_cache import RenderCache
from prerender_gateway.components.renderer.browser_session import BrowserSession
from prerender_gateway.components.renderer.interceptor import ResourceInterceptor
from prerender_gateway.components.renderer.normalizer import ContentNormalizer
from prerender_gateway.components.renderer.readiness import ReadinessDetector
from prerender_gateway.components.security.host_policy import HostPolicy
from prerender_gateway.core.exceptions import ConfigurationError, RendererError, RenderTimeoutError
from prerender_gateway.core.logger import get_logger
from prerender_gateway.core.targets import RenderTarget

if TYPE_CHECKING:
    from prerender_gateway.core.config import ConfigurationManager

logger = get_logger(__name__)


class RenderPipeline:
    """
    Orchestrates a single render: policy checks, cache lookup, browser work and
    cache store.

    The pipeline owns every collaborator, including the shared `BrowserSession`,
    and is itself owned by the application. Concurrent renders share the session
    but each gets its own browser context; a semaphore caps how many contexts
    are open at once.
    """
    DEFAULT_TIMEOUT_MS = 20000
    DEFAULT_MAX_CONCURRENT_PAGES = 8

    def __init__(
        self,
        session: BrowserSession,
        cache: RenderCache,
        host_policy: HostPolicy,
        interceptor: ResourceInterceptor,
        readiness: ReadinessDetector,
        normalizer: Optional[ContentNormalizer] = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_concurrent_pages: int = DEFAULT_MAX_CONCURRENT_PAGES,
    ):
        """
        Args:
            session (BrowserSession): Shared browser handle.
            cache (RenderCache): Snapshot cache keyed on the raw target URL.
            host_policy (HostPolicy): Allow-list and public-address guard.
            interceptor (ResourceInterceptor): Sub-resource filter attached to each context.
            readiness (ReadinessDetector): Decides when the page can be captured.
            normalizer (Optional[ContentNormalizer]): Snapshot rewriter.
            timeout_ms (int): Navigation timeout. Exceeding it fails the render.
            max_concurrent_pages (int): Upper bound on simultaneously open browser contexts.

        Raises:
            ConfigurationError: If `max_concurrent_pages` is not positive.
        """
        if max_concurrent_pages < 1:
            raise ConfigurationError(f"max_concurrent_pages must be at least 1, got {max_concurrent_pages}.")
        self.session = session
        self.cache = cache
        self.host_policy = host_policy
        self.interceptor = interceptor
        self.readiness = readiness
        self.normalizer = normalizer or ContentNormalizer()
        self.timeout_ms = timeout_ms
        self.max_concurrent_pages = max_concurrent_pages
        self._page_slots = asyncio.Semaphore(max_concurrent_pages)

    @classmethod
    def from_config(cls, config: 'ConfigurationManager') -> 'RenderPipeline':
        """Builds a pipeline and all of its collaborators from configuration."""
        logger.info("RenderPipeline initializing with provided configuration.")
        return cls(
            session=BrowserSession(config=config),
            cache=RenderCache.from_config(config),
            host_policy=HostPolicy.from_config(config),
            interceptor=ResourceInterceptor.from_config(config),
            readiness=ReadinessDetector(config=config),
            normalizer=ContentNormalizer(),
            timeout_ms=int(config.get("render.timeout_ms", cls.DEFAULT_TIMEOUT_MS)),
            max_concurrent_pages=int(config.get("render.max_concurrent_pages", cls.DEFAULT_MAX_CONCURRENT_PAGES)),
        )

    async def check_policy(self, target: RenderTarget) -> None:
        """
        Runs both host checks. Happens before any cache or browser work.

        Raises:
            PolicyError: If the host is not in the allow-list.
            SecurityError: If the host resolves to a denylisted address.
            ResolutionError: If the host cannot be resolved.
        """
        self.host_policy.check_allowed(target.hostname)
        await self.host_policy.validate_public(target.hostname)

    async def render(self, target: RenderTarget, cancel_event: Optional[asyncio.Event] = None) -> str:
        """
        Returns the normalized HTML snapshot for `target`, from cache when possible.

        Args:
            target (RenderTarget): The validated target.
            cancel_event (Optional[asyncio.Event]): When set, the readiness wait
                stops early and the page is captured as it is.

        Returns:
            str: The normalized HTML.

        Raises:
            PolicyError, SecurityError, ResolutionError: From the host checks.
            RenderTimeoutError: If navigation exceeds `timeout_ms`.
            RendererError: For any other browser failure.
        """
        await self.check_policy(target)

        cached = self.cache.get(target.url)
        if cached is not None:
            logger.info(f"Cache hit for {target.url}")
            return cached
        logger.info(f"Cache miss for {target.url}; rendering.")

        async with self._page_slots:
            html = await self._render_uncached(target, cancel_event)

        self.cache.set(target.url, html)
        return html

    async def _render_uncached(self, target: RenderTarget, cancel_event: Optional[asyncio.Event]) -> str:
        loop = asyncio.get_running_loop()
        started = loop.time()

        async with self.session.page_context() as context:
            await self.interceptor.attach(context)
            page = await context.new_page()

            try:
                await page.goto(target.url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            except PlaywrightTimeoutError:
                logger.warning(f"Navigation to {target.url} exceeded {self.timeout_ms}ms.")
                raise RenderTimeoutError(target.url, self.timeout_ms)
            except PlaywrightError as e:
                logger.error(f"Navigation to {target.url} failed: {e}")
                raise RendererError(f"Navigation to '{target.url}' failed: {e}")

            ready = await self.readiness.prepare(page, cancel_event=cancel_event)
            html = await self.normalizer.normalize(page, target)

        elapsed_ms = int((loop.time() - started) * 1000)
        logger.info(f"Rendered {target.url} in {elapsed_ms}ms (ready_signal={ready}, {len(html)} chars).")
        return html

    async def aclose(self) -> None:
        """Releases the browser session. Called once, at application shutdown."""
        await self.session.aclose()
