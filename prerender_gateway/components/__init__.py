"""
Components sub-package for the Prerender Gateway.

This package contains the building blocks of a render: the host policy guard,
the snapshot cache, and the browser-facing renderer pieces.

The `__all__` variable defines the public API of this sub-package,
making key components directly importable from `prerender_gateway.components`.
"""
from .cache.render_cache import RenderCache
from .renderer.browser_session import BrowserSession
from .renderer.interceptor import ResourceInterceptor
from .renderer.normalizer import ContentNormalizer, normalize_html
from .renderer.readiness import ReadinessDetector
from .security.host_policy import HostPolicy

__all__ = [
    "RenderCache",
    "BrowserSession",
    "ResourceInterceptor",
    "ContentNormalizer",
    "normalize_html",
    "ReadinessDetector",
    "HostPolicy",
]
