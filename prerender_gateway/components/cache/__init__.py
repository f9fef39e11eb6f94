"""
Cache component for the Prerender Gateway.

Keeps recently rendered snapshots so repeated requests skip the browser.
"""
from .render_cache import RenderCache

__all__ = [
    "RenderCache",
]
