"""
Shared fixtures for the Prerender Gateway test suite.

The suite runs against the 'testing' configuration, and no test launches a real
browser: pages and contexts are mocks.
"""
import os

os.environ["APP_ENV"] = "testing"

import pytest
from unittest.mock import AsyncMock, MagicMock

from prerender_gateway.core.config import ENV_OVERRIDES, config_manager

for _var in ENV_OVERRIDES:
    os.environ.pop(_var, None)
config_manager.load_config("testing")


class StubConfig:
    """Dict-backed stand-in for ConfigurationManager supporting dot-notation `get`."""

    def __init__(self, settings=None):
        self.settings = settings if settings is not None else {}

    def get(self, key, default=None):
        value = self.settings
        try:
            for k_part in key.split('.'):
                value = value[k_part]
            return value
        except (KeyError, TypeError):
            return default


@pytest.fixture
def make_config():
    """Factory for StubConfig instances."""
    return StubConfig


def build_mock_page(title="", meta_count=0, content_count=0, text="", ready_flag=False,
                    html="<html><head></head><body></body></html>"):
    """
    Builds a MagicMock shaped like a Playwright Page for readiness and pipeline tests.

    `page.locator(selector).count()` answers `meta_count` for the meta-description
    selector and `content_count` for anything else.
    """
    page = MagicMock()
    page.title = AsyncMock(return_value=title)

    def _locator(selector):
        locator = MagicMock()
        count = meta_count if selector.startswith("meta") else content_count
        locator.count = AsyncMock(return_value=count)
        return locator

    page.locator = MagicMock(side_effect=_locator)

    async def _evaluate(script, *args):
        if "innerText" in script:
            return text
        if "scrollTo" in script:
            return None
        return ready_flag

    page.evaluate = AsyncMock(side_effect=_evaluate)
    page.wait_for_selector = AsyncMock(return_value=None)
    page.goto = AsyncMock(return_value=MagicMock(status=200))
    page.content = AsyncMock(return_value=html)
    return page


@pytest.fixture
def mock_page_factory():
    """Factory fixture returning `build_mock_page`."""
    return build_mock_page
