"""Shared test fixtures for the larkify test suite."""

from __future__ import annotations

import pytest

from larkify.config import LarkifyConfig
from larkify.converter.md_to_lark import MarkdownToLarkConverter


@pytest.fixture
def config() -> LarkifyConfig:
    """Default test configuration with dummy credentials."""
    return LarkifyConfig(app_id="cli_test_app", app_secret="test_secret_1234")


@pytest.fixture
def converter(config: LarkifyConfig) -> MarkdownToLarkConverter:
    """Markdown-to-blocks converter using the default test config."""
    return MarkdownToLarkConverter(config)
