"""Risk scoring for a proposed change, plus diff scanning for dangerous constructs.

The numeric score depends only on the anomaly, the intent analysis and the
player's skill. The security and performance flags come from a regex scan of
the diff text and feed compile-event generation, never the score.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from haunted_debug.models import Anomaly, Complexity, FixApproach, IntentAnalysis, RiskBand


def complexity_multiplier(complexity: Complexity) -> float:
    match complexity:
        case Complexity.SIMPLE:
            return 0.8
        case Complexity.COMPLEX:
            return 1.3
        case Complexity.ADVANCED:
            return 1.6
        case _:
            return 1.0


def approach_multiplier(approach: FixApproach) -> float:
    match approach:
        case FixApproach.QUICK_FIX:
            return 1.2
        case FixApproach.REFACTOR:
            return 1.4
        case FixApproach.SECURITY_FIX:
            return 0.8
        case FixApproach.OPTIMIZATION:
            return 1.1
        case _:
            return 1.0


def skill_factor(skill_level: float) -> float:
    skill = max(0.0, min(100.0, skill_level))
    return max(0.7, 1.2 - skill / 100)


def risk_band(risk: float) -> RiskBand:
    if risk < 0.4:
        return "low"
    if risk < 0.7:
        return "medium"
    return "high"


# ── Diff scanning ──────────────────────────────────────────

SECURITY_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\beval\s*\("),
    re.compile(r"\bexec\s*\("),
    re.compile(r"\bFunction\s*\("),
    re.compile(r"innerHTML\s*="),
    re.compile(r"document\.write"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*="),
]

PERFORMANCE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"while\s*\(\s*true\s*\)"),
    re.compile(r"while\s+True\s*:"),
    re.compile(r"for\s*\(\s*;\s*;\s*\)"),
    re.compile(r"setInterval\s*\("),
    re.compile(r"setTimeout\s*\("),
    re.compile(r"new\s+Array\s*\(\s*\d{4,}\s*\)"),
]


def _live_lines(diff_text: str) -> list[tuple[int, str]]:
    """Added and context lines of a diff with their 1-based line numbers.

    Removed lines and file/hunk headers are skipped. Plain code passes through.
    """
    lines = []
    for lineno, line in enumerate(diff_text.splitlines(), start=1):
        if line.startswith(("---", "+++", "@@")) or line.startswith("-"):
            continue
        lines.append((lineno, line[1:] if line.startswith("+") else line))
    return lines


def scan_lines(code: str, patterns: list[re.Pattern[str]]) -> list[tuple[int, re.Pattern[str]]]:
    """Return (line, pattern) for every pattern hit in live lines."""
    hits = []
    for lineno, line in _live_lines(code):
        for pattern in patterns:
            if pattern.search(line):
                hits.append((lineno, pattern))
    return hits


def has_security_risk(diff_text: str) -> bool:
    return bool(scan_lines(diff_text, SECURITY_PATTERNS))


def has_performance_risk(diff_text: str) -> bool:
    return bool(scan_lines(diff_text, PERFORMANCE_PATTERNS))


class RiskAssessment(BaseModel):
    score: float
    security_flag: bool = False
    performance_flag: bool = False
    band: RiskBand


class RiskScorer:
    def score(self, anomaly: Anomaly, analysis: IntentAnalysis, skill_level: float) -> float:
        risk = 0.5 + anomaly.severity / 20
        risk *= complexity_multiplier(analysis.complexity)
        risk *= approach_multiplier(analysis.approach)
        risk *= skill_factor(skill_level)
        risk *= 2 - analysis.confidence
        return max(0.0, min(1.0, risk))

    def assess(
        self,
        anomaly: Anomaly,
        analysis: IntentAnalysis,
        skill_level: float,
        diff_text: str = "",
    ) -> RiskAssessment:
        score = self.score(anomaly, analysis, skill_level)
        return RiskAssessment(
            score=score,
            security_flag=has_security_risk(diff_text),
            performance_flag=has_performance_risk(diff_text),
            band=risk_band(score),
        )
