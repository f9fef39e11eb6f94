"""
Custom exception classes for the Prerender Gateway.

Every exception carries the HTTP status code the front door answers with, so the
API layer can map failures without knowing about individual components.
"""
from typing import Optional


class PrerenderGatewayError(Exception):
    """
    Base class for all custom exceptions in the Prerender Gateway.

    Attributes:
        message (str): A human-readable description of the error.
        status_code (int): HTTP status code used when this error reaches a client.
    """
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


# --- Configuration Related Exceptions ---
class ConfigurationError(PrerenderGatewayError):
    """
    Raised for errors related to application configuration, such as a setting
    that cannot be turned into a usable component.
    """
    def __init__(self, message: str):
        super().__init__(message)


# --- Front Door Exceptions ---
class AuthError(PrerenderGatewayError):
    """Raised when the shared render secret is missing, wrong, or not configured at all."""
    status_code = 401


class ValidationError(PrerenderGatewayError):
    """Raised when the requested target is not an absolute http(s) URL."""
    status_code = 400


# --- Host Policy Exceptions ---
class PolicyError(PrerenderGatewayError):
    """
    Raised when a target host does not match the configured allow-list.

    Attributes:
        host (str): The rejected hostname.
    """
    status_code = 403

    def __init__(self, host: str, message: Optional[str] = None):
        self.host = host
        super().__init__(message or f"host '{host}' is not in the allow-list")


class SecurityError(PrerenderGatewayError):
    """
    Raised when a target host resolves to a private, loopback or link-local address.

    Reported to clients as a generic render failure, not as a dedicated status code.

    Attributes:
        host (str): The rejected hostname.
        address (Optional[str]): The first offending address, if known.
    """
    def __init__(self, host: str, address: Optional[str] = None, message: Optional[str] = None):
        self.host = host
        self.address = address
        super().__init__(message or "private ip blocked")


class ResolutionError(PrerenderGatewayError):
    """
    Raised when DNS resolution of a target host fails. Never treated as an allow.

    Attributes:
        host (str): The hostname that failed to resolve.
        original_exception (Optional[Exception]): The underlying resolver error.
    """
    def __init__(self, host: str, original_exception: Optional[Exception] = None):
        self.host = host
        self.original_exception = original_exception
        full_message = f"DNS resolution failed for '{host}'"
        if original_exception:
            full_message += f" (Original exception: {str(original_exception)})"
        super().__init__(full_message)


# --- Component Related Exceptions ---
class ComponentError(PrerenderGatewayError):
    """
    A general base class for errors originating from within a specific component
    (e.g., Renderer, Cache).

    Attributes:
        component_name (str): Name of the component where the error originated.
    """
    def __init__(self, component_name: str, message: str):
        full_message = f"Error in component '{component_name}': {message}"
        super().__init__(full_message)
        self.component_name = component_name


class RendererError(ComponentError):
    """Raised for errors specific to the Renderer component (browser launch, navigation, serialization)."""
    def __init__(self, message: str):
        super().__init__(component_name="Renderer", message=message)


class RenderTimeoutError(RendererError):
    """
    Raised when navigation to a target exceeds the configured render timeout.

    Attributes:
        url (str): The target that timed out.
        timeout_ms (int): The timeout that was exceeded, in milliseconds.
    """
    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation timeout of {timeout_ms}ms exceeded for '{url}'")
