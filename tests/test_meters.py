"""Tests for haunted_debug.meters."""

import logging
import threading

import pytest

from haunted_debug.meters import MeterGauge, insight_label, stability_label, unlocked_features
from haunted_debug.models import (
    CompileEvent,
    Effects,
    EventChain,
    EventType,
    GameOverCondition,
    InsightThreshold,
    MeterState,
)


def _recorder(gauge: MeterGauge, *names: str) -> list:
    seen = []
    for name in names:
        gauge.on(name, seen.append)
    return seen


# ---------------------------------------------------------------------------
# apply_effects
# ---------------------------------------------------------------------------

class TestApplyEffects:
    def test_updates_state_and_history(self):
        gauge = MeterGauge()
        gauge.apply_effects(Effects(stability=5, insight=-3), description="patch")
        assert gauge.state == MeterState(stability=65, insight=7)

        [entry] = gauge.history()
        assert entry.previous == MeterState(stability=60, insight=10)
        assert entry.applied == Effects(stability=5, insight=-3)
        assert entry.description == "patch"

    def test_chain_events_applied_in_same_transaction(self):
        chain = EventChain.from_events([CompileEvent(
            type=EventType.ERROR, description="boom", effects=Effects(stability=-20, insight=2), deterministic=False,
        )])
        gauge = MeterGauge()
        gauge.apply_effects(Effects(stability=5, insight=5), chain=chain)
        assert gauge.state == MeterState(stability=45, insight=17)
        assert len(gauge.history()) == 1
        assert gauge.history()[0].chain_id == chain.id

    def test_history_records_clamped_delta(self):
        gauge = MeterGauge(stability=95, insight=98)
        gauge.apply_effects(Effects(stability=50, insight=50))
        entry = gauge.history()[0]
        assert entry.requested == Effects(stability=50, insight=50)
        assert entry.applied == Effects(stability=5, insight=2)


# ---------------------------------------------------------------------------
# Hooks
# ---------------------------------------------------------------------------

class TestHooks:
    def test_change_hooks_fire_only_on_change(self):
        gauge = MeterGauge()
        seen = _recorder(gauge, "stability_change", "insight_change")
        gauge.apply_effects(Effects(stability=3))
        assert [h.name for h in seen] == ["stability_change"]

    def test_critical_fires_once_per_crossing(self):
        gauge = MeterGauge(stability=25)
        seen = _recorder(gauge, "stability_critical")
        gauge.apply_effects(Effects(stability=-10))
        gauge.apply_effects(Effects(stability=-5))
        assert len(seen) == 1
        assert seen[0].current.stability == 15

        gauge.apply_effects(Effects(stability=30))
        gauge.apply_effects(Effects(stability=-30))
        assert len(seen) == 2

    def test_landing_on_twenty_is_critical(self):
        gauge = MeterGauge(stability=21)
        seen = _recorder(gauge, "stability_critical")
        gauge.apply_effects(Effects(stability=-1))
        assert len(seen) == 1

    def test_one_jump_crosses_every_threshold(self):
        gauge = MeterGauge(insight=10)
        seen = _recorder(gauge, "insight_threshold_25", "insight_threshold_50", "insight_threshold_75")
        gauge.apply_effects(Effects(insight=70))
        assert [h.threshold for h in seen] == [25, 50, 75]
        assert all(isinstance(h, InsightThreshold) for h in seen)

    def test_threshold_does_not_refire_without_dropping_below(self):
        gauge = MeterGauge(insight=20)
        seen = _recorder(gauge, "insight_threshold_25")
        gauge.apply_effects(Effects(insight=10))
        gauge.apply_effects(Effects(insight=10))
        assert len(seen) == 1

    def test_unknown_hook_rejected(self):
        with pytest.raises(ValueError, match="Unknown meter hook"):
            MeterGauge().on("insight_threshold_90", print)

    def test_failing_callback_is_logged_and_others_still_run(self, caplog):
        gauge = MeterGauge()

        def broken(_hook):
            raise RuntimeError("listener bug")

        gauge.on("stability_change", broken)
        seen = _recorder(gauge, "stability_change")
        with caplog.at_level(logging.ERROR, logger="haunted_debug.meters"):
            gauge.apply_effects(Effects(stability=-1))
        assert len(seen) == 1
        assert gauge.stability == 59
        assert "stability_change" in caplog.text

    def test_concurrent_updates_are_serialized(self):
        gauge = MeterGauge(stability=0, insight=0)
        seen = _recorder(gauge, "insight_threshold_25", "insight_threshold_50", "insight_threshold_75")

        def worker():
            for _ in range(25):
                gauge.apply_effects(Effects(stability=1, insight=1))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert gauge.state == MeterState(stability=100, insight=100)
        assert len(gauge.history()) == 100
        assert sorted(h.threshold for h in seen) == [25, 50, 75]


# ---------------------------------------------------------------------------
# Game over
# ---------------------------------------------------------------------------

class TestGameOver:
    def test_no_outcome_while_playing(self):
        assert MeterGauge().check_game_over_conditions("boot_sector", [], ["a"]) is None

    def test_kernel_panic(self):
        gauge = MeterGauge(stability=10)
        gauge.apply_effects(Effects(stability=-40))
        assert gauge.check_game_over_conditions("boot_sector", [], []) == GameOverCondition.KERNEL_PANIC

    def test_moral_inversion(self):
        gauge = MeterGauge()
        gauge.record_ethics_violation("leaked user data")
        assert gauge.state == MeterState()
        assert gauge.check_game_over_conditions("boot_sector", [], []) == GameOverCondition.MORAL_INVERSION

    def test_ethics_violation_after_game_over_is_ignored(self):
        gauge = MeterGauge(stability=10)
        gauge.apply_effects(Effects(stability=-40))
        assert gauge.check_game_over_conditions("boot_sector", [], []) == GameOverCondition.KERNEL_PANIC
        before = gauge.history()

        assert gauge.record_ethics_violation("too late") is False
        assert gauge.history() == before
        assert gauge.check_game_over_conditions("boot_sector", [], []) == GameOverCondition.KERNEL_PANIC

    def test_kernel_panic_takes_precedence(self):
        gauge = MeterGauge(stability=5)
        gauge.record_ethics_violation("bad")
        gauge.apply_effects(Effects(stability=-5))
        assert gauge.check_game_over_conditions("final_merge", [], []) == GameOverCondition.KERNEL_PANIC

    def test_victory_requires_all_conditions(self):
        gauge = MeterGauge(stability=50, insight=60)
        assert gauge.check_game_over_conditions("boot_sector", ["a"], ["a"]) is None
        assert gauge.check_game_over_conditions("final_merge", [], ["a"]) is None
        assert gauge.check_game_over_conditions("final_merge", ["a"], ["a"]) == GameOverCondition.VICTORY

    def test_victory_thresholds(self):
        gauge = MeterGauge(stability=50, insight=59)
        assert gauge.check_game_over_conditions("final_merge", [], []) is None

    def test_custom_terminal_room(self):
        gauge = MeterGauge(stability=80, insight=80, terminal_room="exit")
        assert gauge.check_game_over_conditions("final_merge", [], []) is None
        assert gauge.check_game_over_conditions("exit", [], []) == GameOverCondition.VICTORY

    def test_outcome_is_final(self):
        gauge = MeterGauge(stability=80, insight=80)
        assert gauge.check_game_over_conditions("final_merge", [], []) == GameOverCondition.VICTORY
        gauge.apply_effects(Effects(stability=-100))
        assert gauge.check_game_over_conditions("final_merge", [], []) == GameOverCondition.VICTORY
        assert gauge.outcome == GameOverCondition.VICTORY


# ---------------------------------------------------------------------------
# Read-only views
# ---------------------------------------------------------------------------

class TestViews:
    def test_predict_does_not_mutate(self):
        gauge = MeterGauge(stability=30, insight=20)
        seen = _recorder(gauge, "stability_change")
        prediction = gauge.predict_effects(Effects(stability=-40, insight=40))
        assert prediction.predicted == MeterState(stability=0, insight=60)
        assert prediction.applied == Effects(stability=-30, insight=40)
        assert prediction.game_over_risk
        assert prediction.risk_band == "high"
        assert prediction.unlocked_features == ["Basic Lore", "Advanced Dialogue", "Ghost Hints"]
        assert gauge.state == MeterState(stability=30, insight=20)
        assert gauge.history() == []
        assert seen == []

    def test_status(self):
        status = MeterGauge(stability=15, insight=55).status()
        assert status.is_critical and status.is_warning
        assert status.stability_label == "Dangerous - Kernel Panic Risk"
        assert status.insight_label == "Advanced - Deep Comprehension"
        assert status.unlocked_features == ["Basic Lore", "Advanced Dialogue", "Ghost Hints"]
        assert 0.0 <= status.game_over_risk <= 1.0

    @pytest.mark.parametrize("value,label", [
        (0, "Critical - System Collapse Imminent"),
        (40, "Unstable - Proceed with Caution"),
        (60, "Moderate - Some Risk Present"),
        (100, "Excellent - System Running Smoothly"),
    ])
    def test_stability_labels(self, value, label):
        assert stability_label(value) == label

    def test_insight_labels_and_unlocks(self):
        assert insight_label(0) == "Novice - Learning the Basics"
        assert insight_label(75) == "Expert - Master of the Cursed Code"
        assert unlocked_features(24) == []
        assert unlocked_features(75)[-2:] == ["Deep Lore", "Secret Paths"]

    def test_low_stability_warning(self):
        kinds = [w.kind for w in MeterGauge(stability=20).warnings()]
        assert kinds == ["low_stability"]

    def test_risky_pattern_warning(self):
        gauge = MeterGauge(stability=100, insight=50)
        for _ in range(5):
            gauge.apply_effects(Effects(stability=-6))
        assert "risky_pattern" in [w.kind for w in gauge.warnings()]

    def test_learning_plateau_warning(self):
        gauge = MeterGauge(stability=60, insight=10)
        for _ in range(10):
            gauge.apply_effects(Effects(stability=1))
        warning = next(w for w in gauge.warnings() if w.kind == "learning_plateau")
        assert warning.severity == "info"
