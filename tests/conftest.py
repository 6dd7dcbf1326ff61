"""Shared pytest configuration and fixtures for the fleet simulator test suite."""

import logging
import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow running (spawns real processes)"
    )


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sample_data_model() -> Path:
    """Return the bundled sample tabular data model."""
    return PROJECT_ROOT / "fleet_sim" / "data_models" / "sample_device.csv"


@pytest.fixture
def write_model(tmp_path):
    """Write a data model file into tmp_path and return its path.

    Example:
        path = write_model("model.csv", "Parameter,Object,...\\n...")
    """
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def restore_root_logging():
    """Restore root logger handlers after a test that reconfigures logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def isolated_log_dir(tmp_path, monkeypatch) -> Path:
    """Point worker-process log files at a temporary directory."""
    log_dir = tmp_path / "logs"
    monkeypatch.setenv("FLEET_SIM_LOG_DIR", str(log_dir))
    return log_dir
