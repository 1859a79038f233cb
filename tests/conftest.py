"""
pytest configuration for batchline tests.

Adds src directory to Python path for imports and isolates the process-wide
source registry and environment store between tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from batchline.source import clear_sources  # noqa: E402
from config.environment import DictEnvironment, reset_environment, set_environment  # noqa: E402
from core.logging.context import clear_log_context  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_registry(monkeypatch):
    """Start every test with no sources and an empty environment."""
    monkeypatch.delenv("BATCHLINE_CONFIG", raising=False)
    clear_sources()
    set_environment(DictEnvironment())
    clear_log_context()
    yield
    clear_sources()
    reset_environment()
    clear_log_context()
