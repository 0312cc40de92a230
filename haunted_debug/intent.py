"""Intent classification: free text → approach, complexity, urgency, confidence."""

from __future__ import annotations

from haunted_debug.models import Anomaly, Complexity, FixApproach, IntentAnalysis, SmellCategory, Urgency

BASE_CONFIDENCE = 0.5
KEYWORD_BONUS = 0.2
FALLBACK_CONFIDENCE = 0.6

# Checked in order; a later matching set overrides the approach of an earlier one.
APPROACH_KEYWORDS: list[tuple[FixApproach, tuple[str, ...]]] = [
    (FixApproach.QUICK_FIX, ("quick", "fast", "simple", "temporary", "hotfix")),
    (FixApproach.REFACTOR, ("refactor", "restructure", "redesign", "clean up", "improve")),
    (FixApproach.SECURITY_FIX, ("secure", "safe", "protect", "validate", "sanitize")),
    (FixApproach.OPTIMIZATION, ("optimize", "performance", "faster", "efficient", "speed up")),
]

_COMPLEXITY_RULES: list[tuple[Complexity, tuple[str, ...]]] = [
    (Complexity.SIMPLE, ("simple", "quick", "basic")),
    (Complexity.ADVANCED, ("complex", "advanced", "comprehensive")),
    (Complexity.COMPLEX, ("refactor", "restructure")),
]

_HIGH_URGENCY = ("urgent", "critical", "immediately")
_LOW_URGENCY = ("when possible", "eventually")


def default_approach(smell: SmellCategory) -> FixApproach:
    """Approach used when the intent text is too vague to classify."""
    match smell:
        case SmellCategory.CIRCULAR_DEPENDENCY | SmellCategory.DEAD_CODE:
            return FixApproach.REFACTOR
        case SmellCategory.PROMPT_INJECTION | SmellCategory.DATA_LEAK:
            return FixApproach.SECURITY_FIX
        case SmellCategory.MEMORY_LEAK:
            return FixApproach.OPTIMIZATION
        case _:
            return FixApproach.STANDARD


def _complexity(text: str) -> Complexity:
    for complexity, words in _COMPLEXITY_RULES:
        if any(w in text for w in words):
            return complexity
    return Complexity.MODERATE


def _urgency(text: str) -> Urgency:
    if any(w in text for w in _HIGH_URGENCY):
        return "high"
    if any(w in text for w in _LOW_URGENCY):
        return "low"
    return "medium"


class IntentClassifier:
    def classify(self, text: str, anomaly: Anomaly) -> IntentAnalysis:
        lowered = text.lower()
        approach = FixApproach.STANDARD
        confidence = BASE_CONFIDENCE
        keywords: list[str] = []

        for candidate, words in APPROACH_KEYWORDS:
            for word in words:
                if word in lowered:
                    approach = candidate
                    # capped per match, so three matches in a short intent give 0.7, not 0.77
                    confidence = min(1.0, confidence + KEYWORD_BONUS)
                    keywords.append(word)

        tokens = len(lowered.split())
        if tokens < 3:
            confidence *= 0.7
        elif tokens > 10:
            confidence *= 1.2
        confidence = min(1.0, confidence)

        if confidence < FALLBACK_CONFIDENCE:
            approach = default_approach(anomaly.smell)
            confidence = FALLBACK_CONFIDENCE

        return IntentAnalysis(
            approach=approach,
            confidence=confidence,
            complexity=_complexity(lowered),
            urgency=_urgency(lowered),
            keywords=keywords,
        )
