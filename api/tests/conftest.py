"""
Shared pytest fixtures for the chat pipeline tests.
"""

import pytest

from app.core.config import Settings


@pytest.fixture
def make_settings():
    """Build isolated Settings without reading .env files."""

    def _make(**overrides) -> Settings:
        values = {
            "azure_search_endpoint": "https://search.example.net",
            "azure_openai_endpoint": "https://openai.example.net",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()
