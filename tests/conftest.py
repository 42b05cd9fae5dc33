import pytest
import sys
from pathlib import Path
from unittest.mock import Mock

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Hypothesis configuration for property-based testing
from core.db import DB_TABLES, MusicDatabase
from core.models import PlayerState
from hypothesis import settings

# Register Hypothesis profiles
settings.register_profile("fast", max_examples=50, deadline=None)
settings.register_profile("thorough", max_examples=1000, deadline=None)
settings.load_profile("fast")  # Default to fast profile


def pytest_collection_modifyitems(items):
    """Automatically order tests: unit tests first, then property tests.

    Individual tests marked with @pytest.mark.order("last") will run at the very end.
    """
    for item in items:
        # Skip if item already has explicit order marker
        if hasattr(item, 'get_closest_marker') and item.get_closest_marker('order'):
            continue

        # Assign order based on test file name
        test_file = str(item.fspath)
        if 'test_unit_' in test_file:
            item.add_marker(pytest.mark.order(1))
        elif 'test_props_' in test_file:
            item.add_marker(pytest.mark.order(2))


@pytest.fixture
def db():
    """In-memory MusicDatabase, closed after the test."""
    database = MusicDatabase(':memory:', DB_TABLES)
    yield database
    database.close()


@pytest.fixture
def small_batch_db():
    """In-memory MusicDatabase that streams queues in batches of 2."""
    database = MusicDatabase(':memory:', DB_TABLES, batch_size=2)
    yield database
    database.close()


@pytest.fixture
def mock_device():
    """Playback device double recording play/stop/seek calls."""
    device = Mock()
    device.get_state.return_value = PlayerState()
    return device
