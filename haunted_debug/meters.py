"""MeterGauge: the stability and insight gauges of one game run.

Every mutation goes through apply_effects(), which holds a lock while it
aggregates, clamps, writes the new state, appends a history entry and fires
threshold hooks, so each crossing is reported exactly once.

Hook names:
    stability_change        stability value changed
    stability_critical      stability fell from above 20 to 20 or below
    insight_change          insight value changed
    insight_threshold_N     insight rose from below N to N or above (25, 50, 75)

Callbacks receive one MeterHook payload (see haunted_debug.models).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from haunted_debug.effects import AggregateResult, EffectAggregator
from haunted_debug.models import (
    Effects,
    EventChain,
    GameOverCondition,
    InsightChange,
    InsightThreshold,
    MeterHistoryEntry,
    MeterHook,
    MeterPrediction,
    MeterState,
    MeterStatus,
    RiskBand,
    RunWarning,
    StabilityChange,
    StabilityCritical,
)

logger = logging.getLogger(__name__)

HookCallback = Callable[[MeterHook], None]

CRITICAL_STABILITY = 20
INSIGHT_THRESHOLDS: tuple[int, ...] = (25, 50, 75)
VICTORY_STABILITY = 50
VICTORY_INSIGHT = 60

HOOK_NAMES: tuple[str, ...] = (
    "stability_change",
    "stability_critical",
    "insight_change",
    *(f"insight_threshold_{n}" for n in INSIGHT_THRESHOLDS),
)

FEATURE_UNLOCKS: dict[int, list[str]] = {
    25: ["Basic Lore"],
    50: ["Advanced Dialogue", "Ghost Hints"],
    75: ["Deep Lore", "Secret Paths"],
}


def stability_band(stability: int) -> RiskBand:
    if stability < 20:
        return "high"
    if stability < 40:
        return "medium"
    return "low"


def stability_label(stability: int) -> str:
    if stability <= 10:
        return "Critical - System Collapse Imminent"
    if stability <= 20:
        return "Dangerous - Kernel Panic Risk"
    if stability <= 40:
        return "Unstable - Proceed with Caution"
    if stability <= 60:
        return "Moderate - Some Risk Present"
    if stability <= 80:
        return "Stable - Normal Operation"
    return "Excellent - System Running Smoothly"


def insight_label(insight: int) -> str:
    if insight < 25:
        return "Novice - Learning the Basics"
    if insight < 50:
        return "Intermediate - Gaining Understanding"
    if insight < 75:
        return "Advanced - Deep Comprehension"
    return "Expert - Master of the Cursed Code"


def unlocked_features(insight: int) -> list[str]:
    features: list[str] = []
    for threshold, names in FEATURE_UNLOCKS.items():
        if insight >= threshold:
            features.extend(names)
    return features


def _crossing_hooks(result: AggregateResult) -> list[MeterHook]:
    prev, cur = result.previous, result.current
    payload = {"previous": prev, "current": cur, "effects": result.applied}
    hooks: list[MeterHook] = []
    if cur.stability != prev.stability:
        hooks.append(StabilityChange(**payload))
    if prev.stability > CRITICAL_STABILITY >= cur.stability:
        hooks.append(StabilityCritical(**payload))
    if cur.insight != prev.insight:
        hooks.append(InsightChange(**payload))
    for threshold in INSIGHT_THRESHOLDS:
        if prev.insight < threshold <= cur.insight:
            hooks.append(InsightThreshold(threshold=threshold, **payload))
    return hooks


class MeterGauge:
    def __init__(
        self,
        stability: int = 60,
        insight: int = 10,
        *,
        terminal_room: str = "final_merge",
        aggregator: EffectAggregator | None = None,
    ) -> None:
        self._state = MeterState(stability=stability, insight=insight)
        self._history: list[MeterHistoryEntry] = []
        self._hooks: dict[str, list[HookCallback]] = {name: [] for name in HOOK_NAMES}
        self._lock = threading.RLock()
        self._outcome: GameOverCondition | None = None
        self._aggregator = aggregator or EffectAggregator()
        self.terminal_room = terminal_room

    @property
    def state(self) -> MeterState:
        return self._state

    @property
    def stability(self) -> int:
        return self._state.stability

    @property
    def insight(self) -> int:
        return self._state.insight

    @property
    def outcome(self) -> GameOverCondition | None:
        return self._outcome

    def history(self) -> list[MeterHistoryEntry]:
        return list(self._history)

    def on(self, hook_name: str, callback: HookCallback) -> None:
        if hook_name not in self._hooks:
            raise ValueError(f"Unknown meter hook: {hook_name}")
        self._hooks[hook_name].append(callback)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply_effects(
        self,
        effects: Effects,
        chain: EventChain | None = None,
        description: str = "",
        ethics_violation: bool = False,
    ) -> AggregateResult:
        """Apply base effects plus a chain's events as one transaction."""
        with self._lock:
            result = self._aggregator.aggregate(effects, self._state, chain)
            self._state = result.current
            self._history.append(MeterHistoryEntry(
                previous=result.previous,
                current=result.current,
                requested=result.total,
                applied=result.applied,
                description=description,
                chain_id=chain.id if chain is not None else None,
                ethics_violation=ethics_violation,
            ))
            logger.debug(
                "meters (%d, %d) -> (%d, %d) %s",
                result.previous.stability, result.previous.insight,
                result.current.stability, result.current.insight, description,
            )
            for hook in _crossing_hooks(result):
                self._fire(hook)
            return result

    def record_ethics_violation(self, reason: str) -> bool:
        """Flag an ethics violation in the history. A finished run ignores it."""
        with self._lock:
            if self._outcome is not None:
                logger.info("ethics violation ignored, run already over: %s", reason)
                return False
            self.apply_effects(Effects(), description=reason, ethics_violation=True)
            return True

    def _fire(self, hook: MeterHook) -> None:
        for callback in list(self._hooks[hook.name]):
            try:
                callback(hook)
            except Exception:
                logger.exception("meter hook %s failed", hook.name)

    def restore(
        self,
        state: MeterState,
        history: Iterable[MeterHistoryEntry],
        outcome: GameOverCondition | None,
    ) -> None:
        """Load saved gauges without firing hooks."""
        with self._lock:
            self._state = state
            self._history = list(history)
            self._outcome = outcome

    # ------------------------------------------------------------------
    # Terminal conditions
    # ------------------------------------------------------------------

    def check_game_over_conditions(
        self,
        current_room: str,
        resolved_anomalies: Iterable[str],
        required_anomalies: Iterable[str],
    ) -> GameOverCondition | None:
        """Evaluate terminal conditions. The first outcome found is final."""
        with self._lock:
            if self._outcome is not None:
                return self._outcome

            state = self._state
            if state.stability <= 0:
                outcome = GameOverCondition.KERNEL_PANIC
            elif any(entry.ethics_violation for entry in self._history):
                outcome = GameOverCondition.MORAL_INVERSION
            elif (
                current_room == self.terminal_room
                and set(required_anomalies) <= set(resolved_anomalies)
                and state.stability >= VICTORY_STABILITY
                and state.insight >= VICTORY_INSIGHT
            ):
                outcome = GameOverCondition.VICTORY
            else:
                return None

            self._outcome = outcome
            logger.info("game over: %s", outcome.value)
            return outcome

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def predict_effects(self, hypothetical: Effects, chain: EventChain | None = None) -> MeterPrediction:
        """What apply_effects would do, without changing anything."""
        result = self._aggregator.aggregate(hypothetical, self._state, chain)
        current, predicted = result.previous, result.current
        newly_unlocked = [
            name
            for threshold, names in FEATURE_UNLOCKS.items()
            if current.insight < threshold <= predicted.insight
            for name in names
        ]
        return MeterPrediction(
            current=current,
            predicted=predicted,
            applied=result.applied,
            risk_band=stability_band(predicted.stability),
            game_over_risk=predicted.stability <= 0,
            unlocked_features=newly_unlocked,
        )

    def status(self) -> MeterStatus:
        s, i = self._state.stability, self._state.insight
        return MeterStatus(
            stability=s,
            insight=i,
            stability_label=stability_label(s),
            insight_label=insight_label(i),
            unlocked_features=unlocked_features(i),
            is_critical=s <= CRITICAL_STABILITY,
            is_warning=s <= 40,
            game_over_risk=min(1.0, ((100 - s) / 100) ** 2 * 0.7),
        )

    def warnings(self) -> list[RunWarning]:
        found: list[RunWarning] = []
        s, i = self._state.stability, self._state.insight
        if 10 < s <= 25:
            found.append(RunWarning(
                kind="low_stability",
                message="System stability is low. Consider safer approaches.",
            ))
        recent = self._history[-5:]
        if len(recent) >= 5 and sum(1 for e in recent if e.applied.stability < -5) >= 3:
            found.append(RunWarning(
                kind="risky_pattern",
                message="Several recent changes hurt stability. Slow down and review patches.",
            ))
        if i <= 30 and len(self._history) >= 10 and sum(e.applied.insight for e in recent) <= 2:
            found.append(RunWarning(
                kind="learning_plateau",
                message="Insight has stalled. Ask the anomalies questions to learn more.",
                severity="info",
            ))
        return found
