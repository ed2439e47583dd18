"""Pytest configuration and shared fixtures for Folder Search tests."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

# Set test environment before importing app modules
os.environ["APP_ENV"] = "development"
os.environ["APP_DEBUG"] = "true"
os.environ["APP_LOG_LEVEL"] = "WARNING"

from folder_search.config import CatalogSettings, IndexDefaults, Settings, get_settings  # noqa: E402
from folder_search.core.messages import MessageLog  # noqa: E402


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Create a directory tree to index.

    Layout::

        a.txt          "hello world"
        b.txt          "goodbye world"
        docs/page.html title "Quarterly Report", body about budgets
    """
    tree = tmp_path / "tree"
    (tree / "docs").mkdir(parents=True)
    (tree / "a.txt").write_text("hello world", encoding="utf-8")
    (tree / "b.txt").write_text("goodbye world", encoding="utf-8")
    (tree / "docs" / "page.html").write_text(
        "<html><head><title>Quarterly Report</title></head>"
        "<body><p>The budget grew this quarter.</p></body></html>",
        encoding="utf-8",
    )
    return tree


@pytest.fixture
def settings(root: Path) -> Settings:
    """Settings pointing the catalog at the test tree."""
    return Settings(catalog=CatalogSettings(root=root))


@pytest.fixture
def ram_settings(root: Path) -> Settings:
    """Settings whose new configurations use the in-memory backend."""
    return Settings(catalog=CatalogSettings(root=root), index_defaults=IndexDefaults(backend="RAM"))


@pytest.fixture
def sink() -> MessageLog:
    """In-memory notification sink."""
    return MessageLog()


@pytest.fixture
def mock_settings() -> Generator[None, None, None]:
    """Override environment-driven settings for a test."""
    with patch.dict(
        os.environ,
        {
            "APP_ENV": "development",
            "MEILISEARCH_HOST": "http://localhost",
            "MEILISEARCH_PORT": "7700",
        },
    ):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()


@pytest.fixture
def app(settings: Settings) -> Any:
    """Create a FastAPI application bound to the test tree."""
    from folder_search.main import create_app

    return create_app(settings)


@pytest.fixture
def client(app: Any) -> Generator[TestClient, None, None]:
    """Create a synchronous test client; runs the app lifespan."""
    with TestClient(app) as test_client:
        yield test_client


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "e2e: End-to-end tests")
    config.addinivalue_line("markers", "slow: Slow tests")
