import shutil
from pathlib import Path

import pytest

from backend import runs
from haunted_debug.anomalies import default_catalog
from haunted_debug.config import EngineConfig
from haunted_debug.context import GameRunContext
from haunted_debug.encounter import EncounterStateMachine
from haunted_debug.rng import RandomStream

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data(monkeypatch):
    """Wipe and re-init data-tests/ before every test, with no env overrides."""
    for var in ("HAUNTED_SEED", "HAUNTED_CONTENT_URL", "HAUNTED_CONTENT_API_KEY",
                "HAUNTED_CONTENT_FORMAT", "HAUNTED_CONTENT_MODEL", "HAUNTED_STOCHASTIC_EVENTS"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("haunted_debug.config.load_dotenv", lambda *a, **k: False)
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    runs.init_runs(TEST_DATA_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def ctx():
    """A seeded run with stochastic events off, so gauges move predictably."""
    return GameRunContext(EngineConfig(enable_stochastic_events=False), rng=RandomStream(7))


@pytest.fixture
def machine(ctx):
    return EncounterStateMachine(ctx)
