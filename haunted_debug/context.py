"""GameRunContext: everything one game run owns, passed explicitly to every call.

A run holds its gauges, compile-event history, random stream, anomaly
catalog, progress (room, resolved anomalies, skill) and the collaborators it
talks to. Nothing here is process-wide; two contexts never share state.
"""

from __future__ import annotations

import logging

from haunted_debug.anomalies import AnomalyCatalog, default_catalog
from haunted_debug.collaborators import CueQueue, DiffApplier, LintService, LocalDiffApplier, NullCueQueue, PatternLintService
from haunted_debug.config import EngineConfig
from haunted_debug.events import CompileEventEngine, EventHistory
from haunted_debug.llm import ContentGenerator
from haunted_debug.meters import MeterGauge
from haunted_debug.models import Cue, EncounterSession, GameOverCondition, MeterHook, RunSnapshot, new_id
from haunted_debug.rng import RandomStream

logger = logging.getLogger(__name__)

GAME_OVER_CUES: dict[GameOverCondition, Cue] = {
    GameOverCondition.KERNEL_PANIC: Cue(kind="system_crash", intensity=0.8, source="game_over"),
    GameOverCondition.MORAL_INVERSION: Cue(kind="ethics_violation", intensity=0.7, source="game_over"),
    GameOverCondition.VICTORY: Cue(kind="victory_fanfare", intensity=0.9, source="game_over"),
}


class GameRunContext:
    def __init__(
        self,
        config: EngineConfig | None = None,
        catalog: AnomalyCatalog | None = None,
        rng: RandomStream | None = None,
        *,
        run_id: str | None = None,
        content: ContentGenerator | None = None,
        diff_applier: DiffApplier | None = None,
        lint: LintService | None = None,
        cues: CueQueue | None = None,
    ) -> None:
        self.run_id = run_id or new_id("run")
        self.config = config or EngineConfig()
        self.catalog = catalog or default_catalog()
        self.rng = rng or RandomStream(self.config.seed)
        self.gauge = MeterGauge(
            self.config.starting_stability,
            self.config.starting_insight,
            terminal_room=self.config.terminal_room,
        )
        self.events = EventHistory(self.config.history_limit)
        self.event_engine = CompileEventEngine(self.config, self.events)
        self.current_room = self.config.starting_room
        self.resolved_anomalies: list[str] = []
        self.skill_level = self.config.default_skill_level
        self.encounters: dict[str, EncounterSession] = {}

        self.content = content
        self.diff_applier = diff_applier or LocalDiffApplier()
        self.lint = lint or PatternLintService()
        self.cues = cues or NullCueQueue()

        self.gauge.on("stability_critical", self._on_stability_critical)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    @property
    def outcome(self) -> GameOverCondition | None:
        return self.gauge.outcome

    def mark_resolved(self, anomaly_id: str) -> None:
        if anomaly_id not in self.resolved_anomalies:
            self.resolved_anomalies.append(anomaly_id)

    def move_to(self, room: str) -> GameOverCondition | None:
        self.current_room = room
        return self.check_game_over()

    def set_skill_level(self, skill_level: int) -> None:
        self.skill_level = max(0, min(100, skill_level))

    def check_game_over(self) -> GameOverCondition | None:
        already_over = self.gauge.outcome is not None
        outcome = self.gauge.check_game_over_conditions(
            self.current_room, self.resolved_anomalies, self.catalog.ids(),
        )
        if outcome is not None and not already_over:
            self.emit_cue(GAME_OVER_CUES[outcome])
        return outcome

    # ------------------------------------------------------------------
    # Cues
    # ------------------------------------------------------------------

    def emit_cue(self, cue: Cue) -> None:
        """Queue a cue. Cue delivery never affects the game."""
        try:
            self.cues.queue(cue)
        except Exception as e:
            logger.warning("cue %s dropped: %s", cue.kind, e)

    def _on_stability_critical(self, hook: MeterHook) -> None:
        self.emit_cue(Cue(kind="stability_alarm", intensity=0.7, source="meters"))

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self.run_id,
            seed=self.rng.seed,
            rng_state=self.rng.getstate(),
            gauges=self.gauge.state,
            history=self.gauge.history(),
            event_history=self.events.chains(),
            encounters=list(self.encounters.values()),
            current_room=self.current_room,
            resolved_anomalies=list(self.resolved_anomalies),
            skill_level=self.skill_level,
            outcome=self.gauge.outcome,
        )

    @classmethod
    def restore(
        cls,
        snapshot: RunSnapshot,
        config: EngineConfig | None = None,
        catalog: AnomalyCatalog | None = None,
        **collaborators,
    ) -> GameRunContext:
        """Rebuild a run from a snapshot. The random stream continues where it was saved."""
        rng = RandomStream(snapshot.seed)
        if snapshot.rng_state is not None:
            rng.setstate(snapshot.rng_state)
        ctx = cls(config, catalog, rng, run_id=snapshot.run_id, **collaborators)
        ctx.gauge.restore(snapshot.gauges, snapshot.history, snapshot.outcome)
        for chain in snapshot.event_history:
            ctx.events.append(chain)
        ctx.encounters = {s.id: s for s in snapshot.encounters}
        ctx.current_room = snapshot.current_room
        ctx.resolved_anomalies = list(snapshot.resolved_anomalies)
        ctx.skill_level = snapshot.skill_level
        return ctx
