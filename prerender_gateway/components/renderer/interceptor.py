"""
Per-context request filter that aborts resource categories a crawler snapshot
does not need (images, media, sockets, ...).

The route is installed on the browser context, so it is in place before the
page is created and before navigation starts.
"""
from typing import Iterable, Optional, Union, TYPE_CHECKING

from playwright.async_api import BrowserContext, Route

from prerender_gateway.core.config import split_csv
from prerender_gateway.core.exceptions import ConfigurationError
from prerender_gateway.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_gateway.core.config import ConfigurationManager

logger = get_logger(__name__)

DEFAULT_BLOCKED_RESOURCE_TYPES = ("image", "media", "eventsource", "websocket", "manifest")


class ResourceInterceptor:
    """
    Aborts requests whose Playwright resource type is in the block-set.

    Attributes:
        blocked_types (frozenset): Resource types to abort, e.g. {'image', 'media'}.
    """

    def __init__(self, blocked_types: Union[str, Iterable[str]] = DEFAULT_BLOCKED_RESOURCE_TYPES):
        self.blocked_types = frozenset(t.lower() for t in split_csv(blocked_types))
        logger.info(f"ResourceInterceptor blocking resource types: {sorted(self.blocked_types)}")

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager']) -> 'ResourceInterceptor':
        if config is None:
            return cls()
        blocked = config.get("render.blocked_resource_types", list(DEFAULT_BLOCKED_RESOURCE_TYPES))
        if blocked is None:
            return cls([])
        if not isinstance(blocked, (str, list, tuple)):
            raise ConfigurationError(
                f"render.blocked_resource_types must be a list or a comma-separated string, got {type(blocked).__name__}."
            )
        return cls(blocked)

    def should_block(self, resource_type: str) -> bool:
        return resource_type in self.blocked_types

    async def handle_route(self, route: Route) -> None:
        """Aborts or continues a single intercepted request."""
        request = route.request
        if self.should_block(request.resource_type):
            await route.abort()
        else:
            await route.continue_()

    async def attach(self, context: BrowserContext) -> None:
        """
        Installs the filter on a browser context. Must run before the first navigation.

        Nothing is installed when the block-set is empty, which keeps every
        request off the interception path.
        """
        if not self.blocked_types:
            return
        await context.route("**/*", self.handle_route)
