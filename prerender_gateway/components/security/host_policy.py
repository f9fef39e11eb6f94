"""
Host policy guard for render targets.

Two independent checks keep the gateway from being used as a proxy into
private infrastructure:

1. An operator-supplied allow-list of hostnames (exact or `*.example.com` style).
   An empty allow-list admits every host.
2. A DNS check that rejects a host if *any* of its resolved addresses is
   private, loopback or link-local.
"""
import asyncio
import ipaddress
import re
import socket
from typing import Iterable, List, Optional, Pattern, Tuple, Union, TYPE_CHECKING

from prerender_gateway.core.config import split_csv
from prerender_gateway.core.exceptions import ConfigurationError, PolicyError, ResolutionError, SecurityError
from prerender_gateway.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_gateway.core.config import ConfigurationManager

logger = get_logger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

DENYLISTED_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.1/32"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fe80::/10"),
)


def compile_host_pattern(pattern: str) -> Optional[Pattern[str]]:
    """
    Compiles a wildcard allow-list pattern into a case-insensitive regex.

    Only the first `*` becomes "any characters"; further asterisks stay literal.
    Returns None for plain patterns, which are compared as strings.
    """
    if "*" not in pattern:
        return None
    escaped = re.escape(pattern).replace(r"\*", ".*", 1)
    return re.compile(escaped, re.IGNORECASE)


class HostPolicy:
    """
    Allow-list and public-address checks for target hosts.

    Attributes:
        allow_patterns (Tuple[str, ...]): Configured allow-list patterns.
        deny_private_ips (bool): Whether `validate_public` resolves and checks addresses.
    """

    def __init__(self, allow_patterns: Union[str, Iterable[str]] = (), deny_private_ips: bool = True):
        # A bare string is a comma-separated list, never an iterable of characters.
        self.allow_patterns: Tuple[str, ...] = tuple(split_csv(allow_patterns))
        self.deny_private_ips = deny_private_ips
        self._compiled: List[Tuple[str, Optional[Pattern[str]]]] = [
            (p, compile_host_pattern(p)) for p in self.allow_patterns
        ]
        logger.info(
            f"HostPolicy configured: {len(self.allow_patterns)} allow-list pattern(s), "
            f"deny_private_ips={self.deny_private_ips}"
        )

    @classmethod
    def from_config(cls, config: Optional['ConfigurationManager']) -> 'HostPolicy':
        if config is None:
            return cls()
        allow_hosts = config.get("security.allow_hosts") or []
        if not isinstance(allow_hosts, (str, list, tuple)):
            raise ConfigurationError(
                f"security.allow_hosts must be a list or a comma-separated string, got {type(allow_hosts).__name__}."
            )
        return cls(
            allow_patterns=allow_hosts,
            deny_private_ips=bool(config.get("security.deny_private_ips", True)),
        )

    def is_allowed(self, host: str) -> bool:
        """
        Checks a hostname against the allow-list.

        Args:
            host (str): The hostname to check.

        Returns:
            bool: True if the allow-list is empty or any pattern matches.
        """
        if not self._compiled:
            return True
        for pattern, regex in self._compiled:
            if regex is None:
                if host.lower() == pattern.lower():
                    return True
            elif regex.fullmatch(host):
                return True
        return False

    def check_allowed(self, host: str) -> None:
        """Raises PolicyError if `host` is not admitted by the allow-list."""
        if not self.is_allowed(host):
            logger.warning(f"Host '{host}' rejected by allow-list.")
            raise PolicyError(host)

    @staticmethod
    def is_private_address(address: str) -> bool:
        """
        Tells whether an address falls in a denylisted range.

        IPv4-mapped IPv6 addresses are judged by their IPv4 form, and IPv6 scope
        ids (``fe80::1%eth0``) are ignored. Strings that are not IP addresses are
        never private.
        """
        try:
            ip: IPAddress = ipaddress.ip_address(address.split("%", 1)[0])
        except ValueError:
            return False
        if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        return any(ip.version == net.version and ip in net for net in DENYLISTED_NETWORKS)

    async def resolve(self, host: str) -> List[str]:
        """
        Resolves a hostname to its deduplicated A and AAAA addresses.

        Raises:
            ResolutionError: If the resolver fails.
        """
        loop = asyncio.get_running_loop()
        try:
            results = await loop.getaddrinfo(host, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            logger.warning(f"DNS resolution failed for '{host}': {e}")
            raise ResolutionError(host, e)

        addresses: List[str] = []
        for _family, _type, _proto, _canonname, sockaddr in results:
            ip = str(sockaddr[0])
            if ip not in addresses:
                addresses.append(ip)
        return addresses

    async def validate_public(self, host: str) -> None:
        """
        Rejects hosts that resolve to any private, loopback or link-local address.

        Does nothing when `deny_private_ips` is disabled.

        Raises:
            SecurityError: If any resolved address is denylisted.
            ResolutionError: If DNS resolution fails.
        """
        if not self.deny_private_ips:
            return
        addresses = await self.resolve(host)
        for address in addresses:
            if self.is_private_address(address):
                logger.warning(f"Host '{host}' resolves to denylisted address {address}; blocking render.")
                raise SecurityError(host, address)
        logger.debug(f"Host '{host}' resolved to public addresses: {addresses}")
