"""
Test Configuration
==================

Pytest configuration with shared settings overrides and sample documents.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest

os.environ.setdefault("DBDOC_ENVIRONMENT", "testing")

from pydantic_settings import SettingsConfigDict

import dbdoc.config.settings as settings_module
from dbdoc.config.settings import Settings
from dbdoc.core.dsl.normalizer import normalize
from dbdoc.models.graph import SchemaGraph

from tests.data.sample_documents import (
    orders_document,
    redeclared_document,
    warehouse_document,
)


# Test settings override
class TestSettings(Settings):
    """Test-specific settings."""

    environment: str = "testing"
    log_level: str = "DEBUG"
    output_dir: Path = Path("./test_artifacts")

    model_config = SettingsConfigDict(env_file=".env.test", env_prefix="DBDOC_")


@pytest.fixture(scope="session")
def test_settings() -> TestSettings:
    """Test settings fixture."""
    return TestSettings()


@pytest.fixture(autouse=True)
def override_settings(test_settings: TestSettings) -> Generator[TestSettings, None, None]:
    """Install the test settings as the global settings instance."""
    previous = settings_module.settings
    settings_module.settings = test_settings
    yield test_settings
    settings_module.settings = previous


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for artifact output."""
    temp_path = Path(tempfile.mkdtemp(prefix="dbdoc_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def orders_doc() -> Dict[str, Any]:
    return orders_document()


@pytest.fixture
def warehouse_doc() -> Dict[str, Any]:
    return warehouse_document()


@pytest.fixture
def redeclared_doc() -> Dict[str, Any]:
    return redeclared_document()


@pytest.fixture
def orders_graph(orders_doc: Dict[str, Any]) -> SchemaGraph:
    return normalize(orders_doc)


@pytest.fixture
def warehouse_graph(warehouse_doc: Dict[str, Any]) -> SchemaGraph:
    return normalize(warehouse_doc)


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file paths."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
