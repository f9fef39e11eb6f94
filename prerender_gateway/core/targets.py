"""
Render target model.

A `RenderTarget` is the absolute http(s) URL a client asked to prerender, plus
the two values derived from it that the rest of the gateway needs: the hostname
checked by the host policy and the origin written into the snapshot's base href.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from prerender_gateway.core.exceptions import ValidationError

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

INVALID_TARGET_MESSAGE = "bad request: url must be absolute http(s) via ?url= or /render/<url>"


@dataclass(frozen=True)
class RenderTarget:
    """
    An absolute http(s) URL accepted for rendering.

    Attributes:
        url (str): The raw URL string exactly as extracted from the request. Also the cache key.
        scheme (str): Lower-cased scheme, 'http' or 'https'.
        hostname (str): Lower-cased hostname (IPv6 literals without brackets).
        port (Optional[int]): Explicit port, if the URL carries one.
    """
    url: str
    scheme: str
    hostname: str
    port: Optional[int] = None

    @classmethod
    def parse(cls, raw: Optional[str]) -> 'RenderTarget':
        """
        Parses a raw URL string into a RenderTarget.

        Args:
            raw (Optional[str]): The candidate URL.

        Returns:
            RenderTarget: The parsed target.

        Raises:
            ValidationError: If `raw` is empty, not absolute, has no host, has an
                             invalid port, or uses a scheme other than http/https.
        """
        if not raw:
            raise ValidationError(INVALID_TARGET_MESSAGE)
        try:
            parts = urlsplit(raw.strip())
            port = parts.port
        except ValueError:
            raise ValidationError(INVALID_TARGET_MESSAGE)

        scheme = parts.scheme.lower()
        if scheme not in ALLOWED_SCHEMES or not parts.hostname:
            raise ValidationError(INVALID_TARGET_MESSAGE)

        return cls(url=raw, scheme=scheme, hostname=parts.hostname.lower(), port=port)

    @property
    def origin(self) -> str:
        """Scheme, host and non-default port, e.g. 'https://example.com:8443'."""
        host = f"[{self.hostname}]" if ":" in self.hostname else self.hostname
        if self.port is not None and self.port != DEFAULT_PORTS[self.scheme]:
            host = f"{host}:{self.port}"
        return f"{self.scheme}://{host}"

    def __str__(self) -> str:
        return self.url
