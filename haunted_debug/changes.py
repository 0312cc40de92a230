"""Generated changes: diff templates, impact, notes, alternatives and validation."""

from __future__ import annotations

import difflib

from pydantic import BaseModel, Field

from haunted_debug.models import (
    Anomaly,
    Complexity,
    Effects,
    FixApproach,
    GeneratedChange,
    Impact,
    IntentAnalysis,
    SmellCategory,
    new_id,
)
from haunted_debug.effects import round_half_up
from haunted_debug.risk import has_performance_risk, has_security_risk, risk_band
from haunted_debug.rng import RandomStream


class ChangeValidationError(ValueError):
    """Raised when a generated change is structurally invalid and cannot be applied."""


# ── Diff templates ─────────────────────────────────────────

_PROBLEM_CODE: dict[SmellCategory, str] = {
    SmellCategory.CIRCULAR_DEPENDENCY: 'import moduleB from "./moduleB";\n// moduleB imports this module back',
    SmellCategory.STALE_CACHE: "let cache = new Map();\n// Cache never expires or invalidates",
    SmellCategory.UNBOUNDED_RECURSION: "function walk(n) {\n  return walk(n + 1);\n}",
    SmellCategory.PROMPT_INJECTION: "function processInput(userInput) {\n  return eval(userInput);\n}",
    SmellCategory.DATA_LEAK: 'console.log("User password:", user.password);',
    SmellCategory.DEAD_CODE: "function unusedFunction() {\n  // never called\n}",
    SmellCategory.RACE_CONDITION: "let sharedCounter = 0;\n// Multiple workers update without synchronization",
    SmellCategory.MEMORY_LEAK: "let leakedData = [];\nsetInterval(() => leakedData.push(new Array(1000)), 100);",
}

_FIX_CODE: dict[SmellCategory, dict[FixApproach, str]] = {
    SmellCategory.CIRCULAR_DEPENDENCY: {
        FixApproach.QUICK_FIX: 'const moduleB = await import("./moduleB");',
        FixApproach.REFACTOR: 'const moduleB = inject("moduleB");',
        FixApproach.SECURITY_FIX: 'const moduleB = validateAndImport("./moduleB");',
        FixApproach.OPTIMIZATION: 'const moduleB = lazyLoad("./moduleB");',
        FixApproach.STANDARD: 'const moduleB = require("./moduleB");',
    },
    SmellCategory.STALE_CACHE: {
        FixApproach.QUICK_FIX: "if (Date.now() - cacheTime > 60000) cache.clear();",
        FixApproach.REFACTOR: "const cache = new TTLCache({ ttl: 60000 });",
        FixApproach.SECURITY_FIX: "const cache = new SecureCache({ ttl: 60000, encrypt: true });",
        FixApproach.OPTIMIZATION: 'const cache = new AdaptiveCache({ strategy: "lru-ttl" });',
        FixApproach.STANDARD: "cache.set(key, value, { ttl: 60000 });",
    },
    SmellCategory.UNBOUNDED_RECURSION: {
        FixApproach.QUICK_FIX: "function walk(n) {\n  if (n > 1000) return n;\n  return walk(n + 1);\n}",
        FixApproach.REFACTOR: "function walk(n) {\n  let result = n;\n  while (result < LIMIT) { result += 1; }\n  return result;\n}",
        FixApproach.SECURITY_FIX: (
            "function walk(n, depth = 0) {\n"
            '  if (!isValidInput(n) || depth > MAX_DEPTH) throw new Error("Invalid recursion");\n'
            "  return walk(n + 1, depth + 1);\n}"
        ),
        FixApproach.OPTIMIZATION: "function walk(n, acc = 0) {\n  if (n <= 0) return acc;\n  return walk(n - 1, acc + n);\n}",
        FixApproach.STANDARD: "function walk(n) {\n  if (n <= 0) return 0;\n  return walk(n - 1);\n}",
    },
}


def fix_code(smell: SmellCategory, approach: FixApproach) -> str:
    fixes = _FIX_CODE.get(smell)
    if fixes is None:
        return "// Fixed implementation"
    return fixes.get(approach, fixes[FixApproach.STANDARD])


def render_diff(anomaly: Anomaly, approach: FixApproach, label: str = "Applied fix") -> str:
    """Unified diff replacing the anomaly's problem code with the approach's fix."""
    file_name = f"haunted_{anomaly.smell.value}.js"
    header = [f"// Haunted module: {anomaly.name}", f"// Software smell: {anomaly.smell.value}"]
    before = header + ["// Status: INFECTED", ""] + _PROBLEM_CODE[anomaly.smell].splitlines()
    after = header + ["// Status: PATCHED", "", f"// {label}: {approach.value}"] + fix_code(anomaly.smell, approach).splitlines()
    before.append("// End of haunted module")
    after.append("// End of haunted module")
    lines = difflib.unified_diff(before, after, fromfile=f"a/{file_name}", tofile=f"b/{file_name}", lineterm="")
    return "\n".join(lines)


# ── Impact, notes and anomaly responses ───────────────────

def impact_for(anomaly: Anomaly, analysis: IntentAnalysis) -> Impact:
    score = anomaly.severity / 10
    match analysis.approach:
        case FixApproach.QUICK_FIX:
            score *= 0.6
        case FixApproach.REFACTOR:
            score *= 1.5
        case FixApproach.SECURITY_FIX:
            score *= 1.2
        case FixApproach.OPTIMIZATION:
            score *= 1.1
        case _:
            pass
    match analysis.complexity:
        case Complexity.SIMPLE:
            score *= 0.7
        case Complexity.COMPLEX:
            score *= 1.4
        case Complexity.ADVANCED:
            score *= 1.8
        case _:
            pass

    if score < 0.3:
        return Impact.MINIMAL
    if score < 0.6:
        return Impact.LOCALIZED
    if score < 1.0:
        return Impact.MODERATE
    if score < 1.5:
        return Impact.SIGNIFICANT
    return Impact.SYSTEM_WIDE


_APPROACH_NOTES: dict[FixApproach, str] = {
    FixApproach.QUICK_FIX: "Quick fixes stop the bleeding but often leave the root cause in place.",
    FixApproach.STANDARD: "A standard fix addresses the defect directly with well-known techniques.",
    FixApproach.REFACTOR: "Refactoring changes structure without changing behavior, which pays off over time.",
    FixApproach.SECURITY_FIX: "Security fixes treat every input as hostile until proven otherwise.",
    FixApproach.OPTIMIZATION: "Optimizations should be measured before and after to prove they help.",
}

_SMELL_NOTES: dict[SmellCategory, str] = {
    SmellCategory.CIRCULAR_DEPENDENCY: "Circular dependencies make modules impossible to load or test in isolation.",
    SmellCategory.STALE_CACHE: "Caches need an invalidation strategy, or they serve yesterday's truth.",
    SmellCategory.UNBOUNDED_RECURSION: "Every recursion needs a base case that each call moves toward.",
    SmellCategory.PROMPT_INJECTION: "Untrusted text must never be able to rewrite the instructions around it.",
    SmellCategory.DATA_LEAK: "Sensitive data should never reach logs, errors or debug output.",
    SmellCategory.DEAD_CODE: "Dead code hides intent and rots silently.",
    SmellCategory.RACE_CONDITION: "Shared mutable state needs synchronization or ownership rules.",
    SmellCategory.MEMORY_LEAK: "Anything that grows without bound will eventually exhaust memory.",
}


def educational_notes(anomaly: Anomaly, analysis: IntentAnalysis) -> list[str]:
    notes = [_APPROACH_NOTES[analysis.approach], _SMELL_NOTES[anomaly.smell]]
    if analysis.complexity in (Complexity.COMPLEX, Complexity.ADVANCED):
        notes.append("Large changes are safer when rolled out in small, reviewable steps.")
    return notes


ANOMALY_RESPONSES: dict[str, list[str]] = {
    "low": [
        "Hmm... this might actually work...",
        "A careful approach. I am... impressed.",
        "You understand me better than I expected.",
    ],
    "medium": [
        "Interesting... but are you sure about this?",
        "This could work... or it could make things worse...",
        "A bold move. Let's see if you can handle the consequences.",
    ],
    "high": [
        "Dangerous! Your fix may cause more harm than good!",
        "This approach is reckless... the system may not survive...",
        "I fear what you're about to unleash...",
    ],
}

ALTERNATIVE_RESPONSES = [
    "Perhaps... there is another way...",
    "This path may lead to the same destination...",
    "Different approach, but the outcome remains uncertain...",
]


# ── Alternatives ───────────────────────────────────────────

def alternative_risk(risk: float) -> float:
    if risk > 0.7:
        return max(0.2, risk - 0.4)
    if risk < 0.3:
        return min(0.8, risk + 0.4)
    return risk - 0.3 if risk > 0.5 else risk + 0.3


def alternative_effects(effects: Effects) -> Effects:
    return Effects(
        stability=round_half_up(effects.stability * 0.8),
        insight=round_half_up(effects.insight * 1.2),
    )


# ── Validation ─────────────────────────────────────────────

RISK_RANGES: dict[Complexity, tuple[float, float]] = {
    Complexity.SIMPLE: (0.1, 0.4),
    Complexity.MODERATE: (0.2, 0.6),
    Complexity.COMPLEX: (0.4, 0.8),
    Complexity.ADVANCED: (0.6, 1.0),
}


class ChangeReview(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def diff_structure_errors(diff_text: str) -> list[str]:
    """Problems that stop a unified diff from being applied at all."""
    errors = []
    lines = diff_text.splitlines()
    if not any(line.startswith("--- ") for line in lines):
        errors.append("Missing original file header")
    if not any(line.startswith("+++ ") for line in lines):
        errors.append("Missing new file header")
    if not any(line.startswith("@@") for line in lines):
        errors.append("Missing hunk header")
    changed = [
        line for line in lines
        if line[:1] in ("+", "-") and not line.startswith(("+++", "---"))
    ]
    if not changed:
        errors.append("Diff changes nothing")
    return errors


def review_change(change: GeneratedChange) -> ChangeReview:
    errors = []
    if not change.diff_text.strip():
        errors.append("Change has an empty diff")
    else:
        errors.extend(diff_structure_errors(change.diff_text))
    if not change.description.strip():
        errors.append("Change is missing a description")

    warnings = []
    low, high = RISK_RANGES[change.complexity]
    if not low <= change.risk_score <= high:
        warnings.append(
            f"Risk {change.risk_score:.2f} is unusual for a {change.complexity.value} change "
            f"(expected {low:.1f}-{high:.1f})"
        )
    if not change.educational_notes:
        warnings.append("Change has no educational notes")
    if len(change.explanation) < 20:
        warnings.append("Explanation is too short to be helpful")
    return ChangeReview(valid=not errors, errors=errors, warnings=warnings)


def validate_change(change: GeneratedChange) -> None:
    review = review_change(change)
    if not review.valid:
        raise ChangeValidationError("; ".join(review.errors))


# ── Generator ──────────────────────────────────────────────

class ChangeGenerator:
    """Builds a GeneratedChange from a classified intent, its risk and its effects."""

    def generate(
        self,
        anomaly: Anomaly,
        analysis: IntentAnalysis,
        risk: float,
        effects: Effects,
        rng: RandomStream,
        pattern_type: str | None = None,
    ) -> GeneratedChange:
        pattern = anomaly.pattern(pattern_type)
        diff_text = render_diff(anomaly, analysis.approach)
        label = analysis.approach.value.replace("_", " ")
        if pattern is not None:
            description = f"{label.capitalize()} for {anomaly.name}: {pattern.description or pattern.type}"
        else:
            description = f"{label.capitalize()} for {anomaly.name}"

        return GeneratedChange(
            anomaly_id=anomaly.id,
            diff_text=diff_text,
            description=description,
            explanation=(
                f"Applies a {label} approach to the {anomaly.smell.value.replace('_', ' ')} "
                f"haunting {anomaly.name}, at {analysis.complexity.value} complexity."
            ),
            risk_score=risk,
            expected_effects=effects,
            approach=analysis.approach,
            complexity=analysis.complexity,
            impact=impact_for(anomaly, analysis),
            alternatives=[
                p.description or p.type
                for p in anomaly.fix_patterns
                if pattern is None or p.type != pattern.type
            ],
            educational_notes=educational_notes(anomaly, analysis),
            anomaly_response=rng.choice(ANOMALY_RESPONSES[risk_band(risk)]),
            security_flag=has_security_risk(diff_text),
            performance_flag=has_performance_risk(diff_text),
        )

    def alternative_of(self, change: GeneratedChange, rng: RandomStream) -> GeneratedChange:
        """Same fix with a different risk/reward profile."""
        diff_lines = [
            line.replace("Applied fix:", "Alternative fix:") if line.startswith("+") and not line.startswith("+++") else line
            for line in change.diff_text.splitlines()
        ]
        diff_text = "\n".join(diff_lines)
        return change.model_copy(update={
            "id": new_id("change"),
            "diff_text": diff_text,
            "description": f"Alternative: {change.description}",
            "explanation": f"Alternative approach with different trade-offs: {change.explanation}",
            "risk_score": max(0.0, min(1.0, alternative_risk(change.risk_score))),
            "expected_effects": alternative_effects(change.expected_effects),
            "educational_notes": [
                *change.educational_notes,
                "This alternative trades some stability for deeper understanding.",
            ],
            "anomaly_response": rng.choice(ALTERNATIVE_RESPONSES),
            "security_flag": has_security_risk(diff_text),
            "performance_flag": has_performance_risk(diff_text),
        })
