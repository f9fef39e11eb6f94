"""
API Routes sub-package for the Prerender Gateway.

Re-exports the routers included by the application factory in `api/main.py`.
"""

from .render_routes import router as render_router
from .system_routes import router as system_router

__all__ = [
    "render_router",
    "system_router",
]
