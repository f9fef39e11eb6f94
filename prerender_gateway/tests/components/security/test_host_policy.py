import asyncio
import socket
import pytest
from unittest.mock import AsyncMock, patch

from prerender_gateway.components.security.host_policy import HostPolicy, compile_host_pattern
from prerender_gateway.core.exceptions import ConfigurationError, PolicyError, ResolutionError, SecurityError


def _fake_getaddrinfo(ip_list):
    """Returns an async getaddrinfo replacement answering with the given IPs."""
    async def _fake(host, port, family=0, type=0, proto=0, flags=0):
        results = []
        for ip in ip_list:
            if ":" in ip:
                results.append((socket.AF_INET6, socket.SOCK_STREAM, 6, "", (ip, 0, 0, 0)))
            else:
                results.append((socket.AF_INET, socket.SOCK_STREAM, 6, "", (ip, 0)))
        return results
    return _fake


# --- Allow-list ---

@pytest.mark.parametrize("host", ["example.com", "a.example.com", "10.0.0.1", "anything.internal"])
def test_empty_allow_list_allows_every_host(host):
    assert HostPolicy(allow_patterns=[]).is_allowed(host) is True


def test_single_wildcard_pattern():
    policy = HostPolicy(allow_patterns=["*.example.com"])
    assert policy.is_allowed("a.example.com") is True
    assert policy.is_allowed("deep.a.example.com") is True
    assert policy.is_allowed("A.EXAMPLE.COM") is True
    assert policy.is_allowed("example.com") is False
    assert policy.is_allowed("evil.com") is False
    assert policy.is_allowed("a.example.com.evil.com") is False


def test_wildcard_pattern_escapes_dots():
    policy = HostPolicy(allow_patterns=["*.example.com"])
    assert policy.is_allowed("a.exampleXcom") is False


def test_exact_pattern_is_case_insensitive_full_match():
    policy = HostPolicy(allow_patterns=["Example.COM"])
    assert policy.is_allowed("example.com") is True
    assert policy.is_allowed("www.example.com") is False
    assert policy.is_allowed("example.com.au") is False


def test_any_matching_pattern_allows():
    policy = HostPolicy(allow_patterns=["example.org", "*.example.com"])
    assert policy.is_allowed("example.org") is True
    assert policy.is_allowed("cdn.example.com") is True
    assert policy.is_allowed("example.net") is False


def test_blank_patterns_are_ignored():
    policy = HostPolicy(allow_patterns=["", "  "])
    assert policy.allow_patterns == ()
    assert policy.is_allowed("anything.com") is True


def test_compile_host_pattern_plain_pattern_is_not_compiled():
    assert compile_host_pattern("example.com") is None
    assert compile_host_pattern("*.example.com").pattern == r".*\.example\.com"


def test_check_allowed_raises_policy_error():
    policy = HostPolicy(allow_patterns=["*.example.com"])
    policy.check_allowed("a.example.com")
    with pytest.raises(PolicyError) as excinfo:
        policy.check_allowed("evil.com")
    assert excinfo.value.status_code == 403
    assert excinfo.value.host == "evil.com"


def test_from_config(make_config):
    config = make_config({"security": {"allow_hosts": ["*.example.com"], "deny_private_ips": False}})
    policy = HostPolicy.from_config(config)
    assert policy.allow_patterns == ("*.example.com",)
    assert policy.deny_private_ips is False

    defaults = HostPolicy.from_config(None)
    assert defaults.allow_patterns == ()
    assert defaults.deny_private_ips is True


def test_from_config_splits_comma_separated_string(make_config):
    policy = HostPolicy.from_config(make_config({"security": {"allow_hosts": "*.example.com, example.org"}}))
    assert policy.allow_patterns == ("*.example.com", "example.org")
    assert policy.is_allowed("evil.com") is False
    assert policy.is_allowed("a.example.com") is True


def test_single_string_pattern_is_not_split_into_characters():
    policy = HostPolicy(allow_patterns="*.example.com")
    assert policy.allow_patterns == ("*.example.com",)
    assert policy.is_allowed("evil.com") is False


@pytest.mark.parametrize("value", [{"host": "example.com"}, 42, True])
def test_from_config_rejects_non_list_allow_hosts(make_config, value):
    with pytest.raises(ConfigurationError) as excinfo:
        HostPolicy.from_config(make_config({"security": {"allow_hosts": value}}))
    assert "security.allow_hosts" in str(excinfo.value)


# --- Address classification ---

@pytest.mark.parametrize("address", [
    "10.0.0.5",
    "10.255.255.255",
    "172.16.0.1",
    "172.31.255.254",
    "192.168.1.1",
    "127.0.0.1",
    "169.254.169.254",
    "::1",
    "fe80::1",
    "fe80::1%eth0",
    "febf::1",
    "::ffff:10.0.0.5",
])
def test_denylisted_addresses_are_private(address):
    assert HostPolicy.is_private_address(address) is True


@pytest.mark.parametrize("address", [
    "93.184.216.34",
    "8.8.8.8",
    "172.15.255.255",
    "172.32.0.1",
    "192.169.0.1",
    "2606:2800:220:1:248:1893:25c8:1946",
    "fec0::1",
    "not-an-ip",
])
def test_public_addresses_are_not_private(address):
    assert HostPolicy.is_private_address(address) is False


# --- Public-IP validation ---

@pytest.mark.asyncio
@pytest.mark.parametrize("addresses", [
    ["10.0.0.5"],
    ["93.184.216.34", "10.0.0.5"],
    ["93.184.216.34", "2606:2800:220:1::1", "::1"],
    ["192.168.0.10", "8.8.8.8"],
])
async def test_validate_public_rejects_any_private_address(addresses):
    policy = HostPolicy(deny_private_ips=True)
    with patch.object(policy, "resolve", AsyncMock(return_value=addresses)):
        with pytest.raises(SecurityError) as excinfo:
            await policy.validate_public("target.example")
    assert excinfo.value.status_code == 500
    assert excinfo.value.address in addresses


@pytest.mark.asyncio
async def test_validate_public_accepts_only_public_addresses():
    policy = HostPolicy(deny_private_ips=True)
    with patch.object(policy, "resolve", AsyncMock(return_value=["93.184.216.34", "2606:2800:220:1::1"])):
        await policy.validate_public("example.com")


@pytest.mark.asyncio
async def test_validate_public_disabled_skips_resolution():
    policy = HostPolicy(deny_private_ips=False)
    resolve = AsyncMock(return_value=["10.0.0.5"])
    with patch.object(policy, "resolve", resolve):
        await policy.validate_public("blocked.internal")
    resolve.assert_not_awaited()


@pytest.mark.asyncio
async def test_resolve_deduplicates_addresses(monkeypatch):
    loop = asyncio.get_running_loop()
    monkeypatch.setattr(loop, "getaddrinfo", _fake_getaddrinfo(["93.184.216.34", "93.184.216.34", "2606:2800::1"]))
    policy = HostPolicy()
    assert await policy.resolve("example.com") == ["93.184.216.34", "2606:2800::1"]


@pytest.mark.asyncio
async def test_validate_public_uses_resolver_results(monkeypatch):
    loop = asyncio.get_running_loop()
    monkeypatch.setattr(loop, "getaddrinfo", _fake_getaddrinfo(["10.0.0.5"]))
    with pytest.raises(SecurityError):
        await HostPolicy().validate_public("blocked.internal")


@pytest.mark.asyncio
async def test_resolution_failure_is_an_error_not_an_allow(monkeypatch):
    async def _fail(*args, **kwargs):
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    loop = asyncio.get_running_loop()
    monkeypatch.setattr(loop, "getaddrinfo", _fail)
    with pytest.raises(ResolutionError) as excinfo:
        await HostPolicy().validate_public("no-such-host.invalid")
    assert excinfo.value.host == "no-such-host.invalid"
    assert "DNS resolution failed" in excinfo.value.message
