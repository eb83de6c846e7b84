"""Pytest configuration and fixtures for the fuzzstream test suite."""
import pytest
import random
import sys
from pathlib import Path

# Ensure project modules are importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from fuzz_helpers import ManualLoop  # noqa: E402


# ============================================================================
# SCHEDULING FIXTURES
# ============================================================================

@pytest.fixture
def manual_loop():
    """Scheduler whose deferred callbacks and timers run only when told to."""
    return ManualLoop()


# ============================================================================
# RANDOMNESS FIXTURES
# ============================================================================

@pytest.fixture
def seeded_rng():
    """Deterministic random source."""
    return random.Random(1234)


# ============================================================================
# PYTEST HOOKS AND CONFIGURATION
# ============================================================================

@pytest.fixture(scope='session', autouse=True)
def setup_test_environment():
    """Quiet structured logging for the whole session."""
    from fuzzstream.logging_config import configure_console_logging
    configure_console_logging(log_level="WARNING")
    yield


def pytest_configure(config):
    """Register custom marks."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
