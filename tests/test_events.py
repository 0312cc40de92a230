"""Tests for haunted_debug.events: deterministic, stochastic and cascade passes."""

import pytest

from haunted_debug.config import EngineConfig
from haunted_debug.events import CompileEventEngine, EventHistory
from haunted_debug.models import Effects, EventType, MeterState
from haunted_debug.rng import RandomStream


class ScriptedRandom:
    """Feeds preset values to RandomStream; fails loudly if over-drawn."""

    def __init__(self, values: list[float], picks: list[int] | None = None) -> None:
        self.values = list(values)
        self.picks = list(picks or [])

    def random(self) -> float:
        return self.values.pop(0)

    def randrange(self, n: int) -> int:
        return self.picks.pop(0)


def _engine(**overrides) -> CompileEventEngine:
    return CompileEventEngine(EngineConfig(**overrides))


def _quiet_engine(**overrides) -> CompileEventEngine:
    return _engine(enable_stochastic_events=False, **overrides)


BASE = Effects(stability=10, insight=5)


def _signature(chain):
    return [(e.type, e.effects, e.description, e.is_cascade) for e in chain.events]


# ---------------------------------------------------------------------------
# Deterministic pass
# ---------------------------------------------------------------------------

class TestDeterministic:
    def test_low_risk_yields_single_success(self):
        chain = _quiet_engine().simulate(0.5, BASE, MeterState(), RandomStream(1))
        assert [e.type for e in chain.events] == [EventType.SUCCESS]
        assert chain.total_effects == Effects(stability=1, insight=1)
        assert chain.cascade_depth == 0
        assert all(e.deterministic for e in chain.events)

    def test_risky_change_adds_warning(self):
        chain = _quiet_engine().simulate(0.8, BASE, MeterState(), RandomStream(1))
        warning = chain.events[1]
        assert warning.type == EventType.WARNING
        assert warning.effects == Effects(stability=-4, insight=1)
        assert chain.total_effects == Effects(stability=-3, insight=2)

    def test_flags_add_violation_and_impact(self):
        chain = _quiet_engine().simulate(
            0.2, BASE, MeterState(), RandomStream(1), security_flag=True, performance_flag=True,
        )
        types = [e.type for e in chain.events]
        assert types == [EventType.SUCCESS, EventType.SECURITY_VIOLATION, EventType.PERFORMANCE_IMPACT]
        assert chain.events[1].effects == Effects(stability=-10, insight=3)
        assert chain.events[2].effects == Effects(stability=-2, insight=1)

    def test_disabled_stochastic_pass_draws_nothing(self):
        rng = RandomStream(rng=ScriptedRandom([]))
        chain = _quiet_engine().simulate(0.9, BASE, MeterState(stability=10, insight=90), rng)
        assert all(e.deterministic or e.is_cascade for e in chain.events)


# ---------------------------------------------------------------------------
# Stochastic pass
# ---------------------------------------------------------------------------

class TestStochastic:
    def test_scripted_draws(self):
        """Pool pick, low-stability error with variance, and a discovery, in draw order."""
        rng = RandomStream(rng=ScriptedRandom([0.0, 0.1, 0.75, 0.0, 0.2], picks=[2]))
        chain = _engine().simulate(0.0, BASE, MeterState(stability=20, insight=80), rng)

        descriptions = [e.description for e in chain.events]
        assert descriptions[1] == "Rare edge case triggered"
        assert descriptions[2] == "System instability triggered cascade failure"
        instability = chain.events[2]
        assert instability.is_cascade
        assert instability.effects == Effects(stability=1, insight=-2)
        assert chain.events[3].effects == Effects(stability=5, insight=3)

        # the rare edge case (-5) cascades at stability 20; the instability error cannot
        cascade = chain.events[4]
        assert cascade.is_cascade
        assert cascade.effects == Effects(stability=-3, insight=1)
        assert chain.cascade_depth == 2
        assert chain.total_effects == Effects(stability=-1, insight=6)

    def test_missed_draws_add_nothing(self):
        rng = RandomStream(rng=ScriptedRandom([0.99]))
        chain = _engine().simulate(0.0, BASE, MeterState(stability=100, insight=10), rng)
        assert [e.type for e in chain.events] == [EventType.SUCCESS]

    def test_low_stability_error_frequency(self):
        engine = _engine()
        rng = RandomStream(1234)
        trials = 2000
        hits = 0
        for _ in range(trials):
            chain = engine.simulate(0.3, BASE, MeterState(stability=15, insight=10), rng)
            if any(e.description == "System instability triggered cascade failure" for e in chain.events):
                hits += 1
        assert 0.35 < hits / trials < 0.45

    def test_same_seed_same_chain(self):
        gauges = MeterState(stability=25, insight=75)
        first = _engine().simulate(0.7, BASE, gauges, RandomStream(99), security_flag=True)
        second = _engine().simulate(0.7, BASE, gauges, RandomStream(99), security_flag=True)
        assert _signature(first) == _signature(second)


# ---------------------------------------------------------------------------
# Cascade pass
# ---------------------------------------------------------------------------

class TestCascade:
    def test_no_cascade_when_stable(self):
        chain = _quiet_engine().simulate(
            0.9, BASE, MeterState(stability=60), RandomStream(1), security_flag=True, performance_flag=True,
        )
        assert chain.cascade_depth == 0

    def test_cascade_from_flags_at_low_stability(self):
        chain = _quiet_engine().simulate(
            0.2, BASE, MeterState(stability=40), RandomStream(1), security_flag=True, performance_flag=True,
        )
        cascades = [e for e in chain.events if e.is_cascade]
        assert [e.effects for e in cascades] == [Effects(stability=-6, insight=1), Effects(stability=-2, insight=0)]
        assert all(e.type == EventType.ERROR for e in cascades)
        assert cascades[0].description.startswith("Cascade failure triggered by")

    def test_depth_is_a_hard_stop(self):
        """Four primary events would all cascade at stability 5; only three may."""
        chain = _quiet_engine().simulate(
            0.9, BASE, MeterState(stability=5), RandomStream(1), security_flag=True, performance_flag=True,
        )
        assert chain.cascade_depth == 3

    def test_configured_depth(self):
        chain = _quiet_engine(max_cascade_depth=1).simulate(
            0.2, BASE, MeterState(stability=40), RandomStream(1), security_flag=True, performance_flag=True,
        )
        assert chain.cascade_depth == 1

    def test_depth_never_exceeded_with_randomness(self):
        engine = _engine()
        rng = RandomStream(5)
        for stability in (0, 5, 15, 29, 45):
            for _ in range(200):
                chain = engine.simulate(
                    0.95, Effects(stability=30, insight=30), MeterState(stability=stability, insight=80), rng,
                    security_flag=True, performance_flag=True,
                )
                assert chain.cascade_depth <= 3
                assert chain.cascade_depth == sum(1 for e in chain.events if e.is_cascade)


# ---------------------------------------------------------------------------
# EventHistory
# ---------------------------------------------------------------------------

class TestEventHistory:
    def test_chains_are_recorded(self):
        engine = _quiet_engine()
        chain = engine.simulate(0.5, BASE, MeterState(), RandomStream(1))
        assert engine.history.chains() == [chain]

    def test_limit_keeps_newest(self):
        engine = _quiet_engine(history_limit=3)
        chains = [engine.simulate(0.5, BASE, MeterState(), RandomStream(1)) for _ in range(5)]
        assert engine.history.chains() == chains[-3:]

    def test_prune_and_clear(self):
        history = EventHistory()
        engine = CompileEventEngine(EngineConfig(enable_stochastic_events=False), history)
        for _ in range(4):
            engine.simulate(0.5, BASE, MeterState(), RandomStream(1))
        assert history.prune(1) == 3
        assert len(history) == 1
        history.clear()
        assert len(history) == 0

    @pytest.mark.parametrize("keep", [10, -1])
    def test_prune_bounds(self, keep):
        history = EventHistory()
        removed = history.prune(keep)
        assert removed == 0
