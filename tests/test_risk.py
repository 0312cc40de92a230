"""Tests for haunted_debug.risk: risk formula, bands and diff scanning."""

import itertools

import pytest

from haunted_debug.models import Anomaly, Complexity, FixApproach, IntentAnalysis, SmellCategory
from haunted_debug.risk import RiskScorer, has_performance_risk, has_security_risk, risk_band, skill_factor


def _anomaly(severity: int) -> Anomaly:
    return Anomaly(id="a", name="A", severity=severity, smell=SmellCategory.DEAD_CODE)


def _analysis(approach=FixApproach.STANDARD, confidence=0.6, complexity=Complexity.MODERATE) -> IntentAnalysis:
    return IntentAnalysis(approach=approach, confidence=confidence, complexity=complexity, urgency="medium")


# ── scoring ───────────────────────────────────────────────


def test_regression_fixture_clamps_to_one():
    """0.85 * 1.0 * 1.4 * 0.7 * 1.3 = 1.083, clamped."""
    risk = RiskScorer().score(_anomaly(7), _analysis(FixApproach.REFACTOR, 0.7), skill_level=50)
    assert round(risk, 2) == 1.00


def test_regression_fixture_unclamped():
    """0.65 * 1.0 * 1.4 * 0.7 * 1.3 = 0.8281."""
    risk = RiskScorer().score(_anomaly(3), _analysis(FixApproach.REFACTOR, 0.7), skill_level=80)
    assert round(risk, 2) == 0.83


def test_security_fix_lowers_risk():
    scorer = RiskScorer()
    base = scorer.score(_anomaly(5), _analysis(FixApproach.STANDARD, 0.9), 50)
    secure = scorer.score(_anomaly(5), _analysis(FixApproach.SECURITY_FIX, 0.9), 50)
    assert secure == pytest.approx(base * 0.8)


def test_score_is_deterministic():
    scorer = RiskScorer()
    args = (_anomaly(6), _analysis(FixApproach.OPTIMIZATION, 0.8, Complexity.COMPLEX), 35)
    assert scorer.score(*args) == scorer.score(*args)


def test_score_always_in_unit_interval():
    scorer = RiskScorer()
    for severity, approach, complexity, confidence, skill in itertools.product(
        (1, 5, 10), FixApproach, Complexity, (0.0, 0.6, 1.0), (-50, 0, 50, 100, 250),
    ):
        risk = scorer.score(_anomaly(severity), _analysis(approach, confidence, complexity), skill)
        assert 0.0 <= risk <= 1.0


@pytest.mark.parametrize("skill,expected", [(0, 1.2), (20, 1.0), (50, 0.7), (100, 0.7), (150, 0.7), (-20, 1.2)])
def test_skill_factor(skill, expected):
    assert skill_factor(skill) == pytest.approx(expected)


def test_risk_bands():
    assert risk_band(0.1) == "low"
    assert risk_band(0.4) == "medium"
    assert risk_band(0.69) == "medium"
    assert risk_band(0.7) == "high"


# ── diff scanning ─────────────────────────────────────────


def test_added_eval_is_flagged():
    diff = "--- a/x.js\n+++ b/x.js\n@@ -1 +1 @@\n-return input;\n+return eval(input);"
    assert has_security_risk(diff)


def test_removed_eval_is_not_flagged():
    diff = "--- a/x.js\n+++ b/x.js\n@@ -1 +1 @@\n-return eval(input);\n+return parse(input);"
    assert not has_security_risk(diff)


@pytest.mark.parametrize("line", [
    'el.innerHTML = userText;',
    'document.write("<b>hi</b>");',
    'href = "JAVASCRIPT:alert(1)"',
    '<button onclick="run()">',
    'const f = Function("return 1");',
    'exec(code)',
])
def test_security_patterns(line):
    assert has_security_risk(f"+{line}")


@pytest.mark.parametrize("line", [
    "while (true) { poll(); }",
    "for (;;) {}",
    "while True:",
    "setInterval(tick, 10);",
    "setTimeout(retry, 0);",
    "const buf = new Array(100000);",
])
def test_performance_patterns(line):
    assert has_performance_risk(f"+{line}")


def test_small_allocation_is_fine():
    assert not has_performance_risk("+const buf = new Array(100);")


def test_assess_combines_score_and_flags():
    diff = "+while (true) { eval(x); }"
    result = RiskScorer().assess(_anomaly(2), _analysis(), 50, diff)
    assert result.security_flag and result.performance_flag
    assert result.band == risk_band(result.score)
