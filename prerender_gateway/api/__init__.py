"""
API sub-package for the Prerender Gateway.

This package contains the FastAPI application factory and the route modules.
Import `prerender_gateway.api.main` for the application itself.
"""

__all__ = []
