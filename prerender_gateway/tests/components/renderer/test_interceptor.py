import pytest
from unittest.mock import AsyncMock, MagicMock

from prerender_gateway.components.renderer.interceptor import (
    DEFAULT_BLOCKED_RESOURCE_TYPES,
    ResourceInterceptor,
)
from prerender_gateway.core.exceptions import ConfigurationError


def _mock_route(resource_type):
    route = MagicMock()
    route.request.resource_type = resource_type
    route.abort = AsyncMock()
    route.continue_ = AsyncMock()
    return route


def test_default_block_set():
    interceptor = ResourceInterceptor()
    assert interceptor.blocked_types == frozenset(DEFAULT_BLOCKED_RESOURCE_TYPES)
    for resource_type in ("image", "media", "eventsource", "websocket", "manifest"):
        assert interceptor.should_block(resource_type) is True
    for resource_type in ("document", "script", "stylesheet", "xhr", "fetch", "font"):
        assert interceptor.should_block(resource_type) is False


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_type", ["image", "media", "websocket"])
async def test_blocked_request_is_aborted(resource_type):
    route = _mock_route(resource_type)
    await ResourceInterceptor().handle_route(route)
    route.abort.assert_awaited_once()
    route.continue_.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_type", ["document", "script", "xhr"])
async def test_allowed_request_continues(resource_type):
    route = _mock_route(resource_type)
    await ResourceInterceptor().handle_route(route)
    route.continue_.assert_awaited_once()
    route.abort.assert_not_awaited()


@pytest.mark.asyncio
async def test_attach_routes_every_request_on_the_context():
    interceptor = ResourceInterceptor(["image"])
    context = MagicMock()
    context.route = AsyncMock()
    await interceptor.attach(context)
    context.route.assert_awaited_once_with("**/*", interceptor.handle_route)


@pytest.mark.asyncio
async def test_attach_with_empty_block_set_installs_nothing():
    interceptor = ResourceInterceptor([])
    context = MagicMock()
    context.route = AsyncMock()
    await interceptor.attach(context)
    context.route.assert_not_awaited()


def test_block_set_is_normalized():
    interceptor = ResourceInterceptor([" Image ", "", "FONT"])
    assert interceptor.blocked_types == frozenset({"image", "font"})


def test_from_config(make_config):
    interceptor = ResourceInterceptor.from_config(make_config({"render": {"blocked_resource_types": ["font", "stylesheet"]}}))
    assert interceptor.blocked_types == frozenset({"font", "stylesheet"})
    assert ResourceInterceptor.from_config(make_config({})).blocked_types == frozenset(DEFAULT_BLOCKED_RESOURCE_TYPES)
    assert ResourceInterceptor.from_config(None).blocked_types == frozenset(DEFAULT_BLOCKED_RESOURCE_TYPES)


def test_from_config_splits_comma_separated_string(make_config):
    interceptor = ResourceInterceptor.from_config(make_config({"render": {"blocked_resource_types": "image, media"}}))
    assert interceptor.blocked_types == frozenset({"image", "media"})
    assert interceptor.should_block("image") is True
    assert interceptor.should_block("document") is False


def test_from_config_rejects_non_list_block_set(make_config):
    with pytest.raises(ConfigurationError):
        ResourceInterceptor.from_config(make_config({"render": {"blocked_resource_types": {"image": True}}}))


def test_missing_block_set_blocks_nothing(make_config):
    interceptor = ResourceInterceptor.from_config(make_config({"render": {"blocked_resource_types": None}}))
    assert interceptor.blocked_types == frozenset()
