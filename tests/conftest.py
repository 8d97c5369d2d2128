"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.ids import SequentialIds
from brackets.models import Event


@pytest.fixture
def new_id():
    """Deterministic id generator."""
    return SequentialIds('m')


@pytest.fixture
def event():
    """A two-day event at a single venue."""
    return Event(
        id='ev1',
        start_date='2026-05-01',
        end_date='2026-05-02',
        start_time='09:00',
        end_time='18:00',
        venue='Main Hall',
    )


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at a temporary data directory with one event."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()

    events_file = data_dir / "events.yaml"
    events_file.write_text(yaml.dump({'events': [{
        'id': 'ev1',
        'start_date': '2026-05-01',
        'end_date': '2026-05-02',
        'start_time': '09:00',
        'end_time': '18:00',
        'venue': 'Main Hall',
    }]}, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    monkeypatch.setattr(app_module, 'BRACKETS_FILE', str(data_dir / "brackets.yaml"))
    monkeypatch.setattr(app_module, 'EVENTS_FILE', str(events_file))
    monkeypatch.setattr(app_module, 'SETTINGS_FILE', str(data_dir / "settings.yaml"))
    monkeypatch.setattr(app_module, 'LOCK_FILE', str(data_dir / ".lock"))

    return str(data_dir)


@pytest.fixture
def client(temp_data_dir):
    """Create a test client backed by the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
