"""Compile event simulation.

Evaluating a generated change produces one EventChain built in three passes:

    deterministic    always a Success; a Warning for risky changes; one event
                     per diff flag (security, performance)
    stochastic       a random flavor event, an instability Error when the
                     system is fragile, a discovery when insight is high
    cascade          secondary Errors synthesized from high-risk primary
                     events while stability is low, capped per chain

All randomness is drawn from the run's RandomStream, so a fixed seed replays
the same chain. Every chain is appended to the run's EventHistory.
"""

from __future__ import annotations

import logging
import math

from haunted_debug.config import EngineConfig
from haunted_debug.models import CompileEvent, Effects, EventChain, EventType, MeterState
from haunted_debug.rng import RandomStream

logger = logging.getLogger(__name__)

SUCCESS_EFFECTS = Effects(stability=1, insight=1)
SECURITY_VIOLATION_EFFECTS = Effects(stability=-10, insight=3)
PERFORMANCE_IMPACT_EFFECTS = Effects(stability=-2, insight=1)
DISCOVERY_EFFECTS = Effects(stability=5, insight=3)

WARNING_RISK_THRESHOLD = 0.6
LOW_STABILITY = 30
LOW_STABILITY_ERROR_CHANCE = 0.4
HIGH_INSIGHT = 70
DISCOVERY_CHANCE = 0.3
CASCADE_STABILITY_LIMIT = 50
CASCADE_EFFECT_FACTOR = 0.6
VARIANCE = 0.3

# (type, description, effects); sampled uniformly
STOCHASTIC_POOL: list[tuple[EventType, str, Effects]] = [
    (EventType.WARNING, "Unexpected side effect detected", Effects(stability=-3, insight=2)),
    (EventType.SUCCESS, "Serendipitous optimization discovered", Effects(stability=3, insight=1)),
    (EventType.ERROR, "Rare edge case triggered", Effects(stability=-5, insight=3)),
    (EventType.PERFORMANCE_IMPACT, "Memory usage spike detected", Effects(stability=-2, insight=1)),
]


def event_base_risk(event_type: EventType) -> float:
    match event_type:
        case EventType.ERROR:
            return 0.8
        case EventType.SECURITY_VIOLATION:
            return 0.9
        case EventType.WARNING:
            return 0.4
        case EventType.PERFORMANCE_IMPACT:
            return 0.5
        case _:
            return 0.1


def stability_factor(stability: int) -> float:
    return max(0.1, stability / 100)


class EventHistory:
    """Bounded, prunable log of the event chains produced during a run."""

    def __init__(self, limit: int = 100) -> None:
        self._limit = limit
        self._chains: list[EventChain] = []

    def append(self, chain: EventChain) -> None:
        self._chains.append(chain)
        if len(self._chains) > self._limit:
            del self._chains[: len(self._chains) - self._limit]

    def chains(self) -> list[EventChain]:
        return list(self._chains)

    def prune(self, keep: int) -> int:
        """Drop all but the newest `keep` chains. Returns how many were removed."""
        removed = max(0, len(self._chains) - max(0, keep))
        if removed:
            del self._chains[:removed]
        return removed

    def clear(self) -> None:
        self._chains.clear()

    def __len__(self) -> int:
        return len(self._chains)


class CompileEventEngine:
    def __init__(self, config: EngineConfig | None = None, history: EventHistory | None = None) -> None:
        self.config = config or EngineConfig()
        self.history = history if history is not None else EventHistory(self.config.history_limit)

    def simulate(
        self,
        risk: float,
        base_effects: Effects,
        gauges: MeterState,
        rng: RandomStream,
        security_flag: bool = False,
        performance_flag: bool = False,
    ) -> EventChain:
        risk = max(0.0, min(1.0, risk))
        events = self._deterministic_events(risk, security_flag, performance_flag)
        if self.config.enable_stochastic_events:
            events.extend(self._stochastic_events(risk, base_effects, gauges, rng))
        events.extend(self._cascade_events(events, gauges))

        chain = EventChain.from_events(events)
        self.history.append(chain)
        logger.debug(
            "compile chain=%s events=%d cascades=%d total=(%d, %d)",
            chain.id, len(chain.events), chain.cascade_depth,
            chain.total_effects.stability, chain.total_effects.insight,
        )
        return chain

    # ── Pass 1 ──────────────────────────────────────────────

    def _deterministic_events(
        self, risk: float, security_flag: bool, performance_flag: bool
    ) -> list[CompileEvent]:
        events = [CompileEvent(
            type=EventType.SUCCESS,
            description="Code compiled successfully",
            effects=SUCCESS_EFFECTS,
            deterministic=True,
        )]
        if risk > WARNING_RISK_THRESHOLD:
            events.append(CompileEvent(
                type=EventType.WARNING,
                description="Compiler warnings raised by a high-risk change",
                effects=Effects(stability=-math.floor(risk * 5), insight=math.floor(risk * 2)),
                deterministic=True,
            ))
        if security_flag:
            events.append(CompileEvent(
                type=EventType.SECURITY_VIOLATION,
                description="Dangerous construct detected in the change",
                effects=SECURITY_VIOLATION_EFFECTS,
                deterministic=True,
            ))
        if performance_flag:
            events.append(CompileEvent(
                type=EventType.PERFORMANCE_IMPACT,
                description="Performance hazard detected in the change",
                effects=PERFORMANCE_IMPACT_EFFECTS,
                deterministic=True,
            ))
        return events

    # ── Pass 2 ──────────────────────────────────────────────

    def _stochastic_events(
        self, risk: float, base_effects: Effects, gauges: MeterState, rng: RandomStream
    ) -> list[CompileEvent]:
        events: list[CompileEvent] = []

        probability = self.config.stochastic_probability * (1 + risk) / stability_factor(gauges.stability)
        if rng.chance(probability):
            event_type, description, effects = rng.choice(STOCHASTIC_POOL)
            events.append(CompileEvent(
                type=event_type, description=description, effects=effects, deterministic=False,
            ))

        if gauges.stability < LOW_STABILITY and rng.chance(LOW_STABILITY_ERROR_CHANCE):
            events.append(CompileEvent(
                type=EventType.ERROR,
                description="System instability triggered cascade failure",
                effects=Effects(
                    stability=self._variance(base_effects.stability, rng),
                    insight=self._variance(base_effects.insight, rng),
                ),
                deterministic=False,
                is_cascade=True,
            ))

        if gauges.insight > HIGH_INSIGHT and rng.chance(DISCOVERY_CHANCE):
            events.append(CompileEvent(
                type=EventType.SUCCESS,
                description="High insight revealed a hidden optimization",
                effects=DISCOVERY_EFFECTS,
                deterministic=False,
            ))
        return events

    @staticmethod
    def _variance(base: int, rng: RandomStream) -> int:
        """Random swing of up to ±30% of the base magnitude."""
        return math.floor((rng.random() - 0.5) * 2 * VARIANCE * abs(base))

    # ── Pass 3 ──────────────────────────────────────────────

    def _cascade_events(self, events: list[CompileEvent], gauges: MeterState) -> list[CompileEvent]:
        cascades: list[CompileEvent] = []
        if gauges.stability >= CASCADE_STABILITY_LIMIT:
            return cascades

        depth = sum(1 for e in events if e.is_cascade)
        for event in events:
            if event.is_cascade:
                continue
            if depth >= self.config.max_cascade_depth:
                logger.debug("cascade limit %d reached", self.config.max_cascade_depth)
                break
            if self._event_risk(event, gauges) > self.config.cascade_threshold:
                cascades.append(CompileEvent(
                    type=EventType.ERROR,
                    description=f"Cascade failure triggered by: {event.description}",
                    effects=Effects(
                        stability=math.floor(event.effects.stability * CASCADE_EFFECT_FACTOR),
                        insight=math.floor(event.effects.insight * CASCADE_EFFECT_FACTOR),
                    ),
                    deterministic=False,
                    is_cascade=True,
                ))
                depth += 1
        return cascades

    @staticmethod
    def _event_risk(event: CompileEvent, gauges: MeterState) -> float:
        risk = event_base_risk(event.type) / stability_factor(gauges.stability)
        if event.effects.stability < 0:
            risk += abs(event.effects.stability) / 20
        return max(0.0, min(1.0, risk))
