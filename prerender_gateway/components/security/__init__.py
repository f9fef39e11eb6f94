"""
Security component for the Prerender Gateway.

Holds the host policy guard that decides which targets may be rendered.
"""
from .host_policy import HostPolicy, compile_host_pattern

__all__ = [
    "HostPolicy",
    "compile_host_pattern",
]
