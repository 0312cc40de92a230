"""Gauge effect calculation and aggregation."""

from __future__ import annotations

import math

from pydantic import BaseModel

from haunted_debug.models import (
    Anomaly,
    Complexity,
    Effects,
    EventChain,
    FixApproach,
    IntentAnalysis,
    MeterState,
)

DEFAULT_STABILITY_EFFECT = 10
DEFAULT_INSIGHT_EFFECT = 5

GAUGE_MIN = 0
GAUGE_MAX = 100


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def clamp_gauge(value: int) -> int:
    return max(GAUGE_MIN, min(GAUGE_MAX, value))


def approach_scaling(approach: FixApproach) -> tuple[float, float]:
    match approach:
        case FixApproach.QUICK_FIX:
            return 0.8, 0.6
        case FixApproach.REFACTOR:
            return 1.3, 1.5
        case FixApproach.SECURITY_FIX:
            return 1.1, 1.3
        case FixApproach.OPTIMIZATION:
            return 1.2, 1.1
        case _:
            return 1.0, 1.0


def complexity_scaling(complexity: Complexity) -> tuple[float, float]:
    match complexity:
        case Complexity.SIMPLE:
            return 0.8, 0.7
        case Complexity.COMPLEX:
            return 1.2, 1.4
        case Complexity.ADVANCED:
            return 1.4, 1.8
        case _:
            return 1.0, 1.0


class EffectCalculator:
    def calculate(
        self,
        anomaly: Anomaly,
        analysis: IntentAnalysis,
        risk: float,
        pattern_type: str | None = None,
    ) -> Effects:
        """Expected gauge deltas for fixing `anomaly` the way `analysis` describes."""
        pattern = anomaly.pattern(pattern_type)
        if pattern is None:
            stability, insight = float(DEFAULT_STABILITY_EFFECT), float(DEFAULT_INSIGHT_EFFECT)
        else:
            stability, insight = float(pattern.base_stability_effect), float(pattern.base_insight_effect)

        s_mult, i_mult = approach_scaling(analysis.approach)
        stability *= s_mult
        insight *= i_mult

        if risk > 0.7:
            stability *= 1 - (risk - 0.7) * 2
            insight *= 0.9
        elif risk < 0.3:
            stability *= 1.2
            insight *= 1.1

        s_mult, i_mult = complexity_scaling(analysis.complexity)
        stability *= s_mult
        insight *= i_mult

        return Effects(stability=round_half_up(stability), insight=round_half_up(insight))


class AggregateResult(BaseModel):
    total: Effects
    previous: MeterState
    current: MeterState
    applied: Effects


class EffectAggregator:
    """Combines base effects with an event chain and clamps the result."""

    def aggregate(
        self,
        base: Effects,
        gauges: MeterState,
        chain: EventChain | None = None,
    ) -> AggregateResult:
        total = base
        if chain is not None:
            for event in chain.events:
                total = total + event.effects

        current = MeterState(
            stability=clamp_gauge(gauges.stability + total.stability),
            insight=clamp_gauge(gauges.insight + total.insight),
        )
        applied = Effects(
            stability=current.stability - gauges.stability,
            insight=current.insight - gauges.insight,
        )
        return AggregateResult(total=total, previous=gauges, current=current, applied=applied)
