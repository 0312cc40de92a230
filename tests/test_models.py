"""Tests for the core domain models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from haunted_debug.models import (
    Effects,
    EncounterSession,
    EncounterState,
    InsightThreshold,
    MeterHook,
    MeterState,
    StabilityCritical,
    new_id,
)


def test_effects_add():
    assert Effects(stability=3, insight=-1) + Effects(stability=-5, insight=4) == Effects(stability=-2, insight=3)


def test_value_objects_are_frozen():
    effects = Effects(stability=1)
    with pytest.raises(ValidationError):
        effects.stability = 2


@pytest.mark.parametrize("stability", [-1, 101])
def test_meter_state_bounds(stability):
    with pytest.raises(ValidationError):
        MeterState(stability=stability)


def test_new_id_prefix():
    a, b = new_id("run"), new_id("run")
    assert a.startswith("run_") and len(a) == 16
    assert a != b


def test_meter_hook_discriminator():
    adapter = TypeAdapter(MeterHook)
    payload = {"previous": {"stability": 30, "insight": 10}, "current": {"stability": 10, "insight": 10}, "effects": {}}

    critical = adapter.validate_python({"kind": "stability_critical", **payload})
    assert isinstance(critical, StabilityCritical)
    assert critical.name == "stability_critical"

    threshold = adapter.validate_python({"kind": "insight_threshold", "threshold": 50, **payload})
    assert isinstance(threshold, InsightThreshold)
    assert threshold.name == "insight_threshold_50"

    with pytest.raises(ValidationError):
        adapter.validate_python({"kind": "insight_threshold", "threshold": 60, **payload})


def test_session_terminal_states():
    session = EncounterSession(anomaly_id="stale_cache")
    assert session.state == EncounterState.NOT_STARTED
    assert not session.is_terminal
    session.state = EncounterState.FAILED
    assert session.is_terminal
