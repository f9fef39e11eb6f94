"""
Renderer component for the Prerender Gateway.

This sub-package drives the headless browser: it owns the shared browser
session, filters sub-resource loads, decides when a page is ready, and turns
the live DOM into a static snapshot.
"""
from .browser_session import BrowserSession
from .interceptor import ResourceInterceptor, DEFAULT_BLOCKED_RESOURCE_TYPES
from .normalizer import ContentNormalizer, normalize_html
from .readiness import ReadinessDetector

__all__ = [
    "BrowserSession",
    "ResourceInterceptor",
    "DEFAULT_BLOCKED_RESOURCE_TYPES",
    "ContentNormalizer",
    "normalize_html",
    "ReadinessDetector",
]
