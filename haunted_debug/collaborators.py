"""Boundaries to the services the engine orchestrates but does not own.

    DiffApplier    applies a diff to a target; LocalDiffApplier only checks
                   that the diff is well formed
    LintService    lints code against a ruleset; PatternLintService reuses
                   the regex scan from haunted_debug.risk
    CueQueue       fire-and-forget sound/visual cues; MemoryCueQueue keeps
                   the most recent ones for a frontend to poll
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Protocol

from haunted_debug.changes import diff_structure_errors
from haunted_debug.models import Cue, DiffApplyResult, LintIssue, LintReport
from haunted_debug.risk import PERFORMANCE_PATTERNS, SECURITY_PATTERNS, scan_lines

logger = logging.getLogger(__name__)


class DiffApplier(Protocol):
    async def apply(self, diff_text: str, target_id: str) -> DiffApplyResult: ...


class LintService(Protocol):
    async def run(self, code: str, ruleset: list[str]) -> LintReport: ...


class CueQueue(Protocol):
    def queue(self, cue: Cue) -> None: ...


# ── Diff apply ─────────────────────────────────────────────

class LocalDiffApplier:
    async def apply(self, diff_text: str, target_id: str) -> DiffApplyResult:
        errors = diff_structure_errors(diff_text)
        logger.debug("diff apply target=%s errors=%d", target_id, len(errors))
        return DiffApplyResult(success=not errors, errors=errors)


# ── Lint ───────────────────────────────────────────────────

_EVAL_PATTERNS = SECURITY_PATTERNS[:3]
_INLINE_PATTERNS = SECURITY_PATTERNS[3:]

LINT_RULES: dict[str, tuple[list[re.Pattern[str]], str, str]] = {
    "no-eval": (_EVAL_PATTERNS, "error", "Dynamic code execution"),
    "no-unsafe-inline": (_INLINE_PATTERNS, "error", "Unsafe inline content"),
    "no-dangerous-functions": (PERFORMANCE_PATTERNS, "warning", "Unbounded loop, timer or allocation"),
}


class PatternLintService:
    async def run(self, code: str, ruleset: list[str]) -> LintReport:
        issues: list[LintIssue] = []
        for rule in ruleset:
            if rule not in LINT_RULES:
                logger.debug("unknown lint rule %s skipped", rule)
                continue
            patterns, severity, label = LINT_RULES[rule]
            for line, pattern in scan_lines(code, patterns):
                issues.append(LintIssue(
                    line=line,
                    severity=severity,
                    message=f"{rule}: {label} ({pattern.pattern})",
                ))
        issues.sort(key=lambda issue: issue.line)
        return LintReport(passed=not any(i.severity == "error" for i in issues), issues=issues)


# ── Cues ───────────────────────────────────────────────────

class MemoryCueQueue:
    def __init__(self, maxlen: int = 50) -> None:
        self._cues: deque[Cue] = deque(maxlen=maxlen)

    def queue(self, cue: Cue) -> None:
        self._cues.append(cue)

    def drain(self) -> list[Cue]:
        cues = list(self._cues)
        self._cues.clear()
        return cues


class NullCueQueue:
    def queue(self, cue: Cue) -> None:
        pass
