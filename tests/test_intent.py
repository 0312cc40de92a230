"""Tests for haunted_debug.intent: keyword classification and fallbacks."""

import pytest

from haunted_debug.intent import IntentClassifier, default_approach
from haunted_debug.models import Complexity, FixApproach, SmellCategory


@pytest.fixture
def classifier() -> IntentClassifier:
    return IntentClassifier()


@pytest.fixture
def ouroboros(catalog):
    return catalog.get("circular_dependency")


@pytest.fixture
def manipulator(catalog):
    return catalog.get("prompt_injection")


# ── approach and confidence ───────────────────────────────


def test_each_keyword_adds_confidence(classifier, ouroboros):
    result = classifier.classify("quick hotfix please now", ouroboros)
    assert result.approach == FixApproach.QUICK_FIX
    assert result.confidence == pytest.approx(0.9)
    assert result.keywords == ["quick", "hotfix"]


def test_last_matching_set_wins(classifier, ouroboros):
    result = classifier.classify("make it secure and optimize it please", ouroboros)
    assert result.approach == FixApproach.OPTIMIZATION
    assert result.confidence == pytest.approx(0.9)


def test_match_is_case_insensitive(classifier, ouroboros):
    result = classifier.classify("Please REFACTOR the whole module", ouroboros)
    assert result.approach == FixApproach.REFACTOR
    assert "refactor" in result.keywords


def test_multi_word_keywords(classifier, ouroboros):
    result = classifier.classify("let us speed up the loader", ouroboros)
    assert result.approach == FixApproach.OPTIMIZATION
    assert "speed up" in result.keywords


def test_confidence_capped_at_one(classifier, ouroboros):
    result = classifier.classify("quick fast simple temporary hotfix safe secure", ouroboros)
    assert result.confidence == 1.0
    assert result.approach == FixApproach.SECURITY_FIX


def test_cap_applies_before_short_intent_scaling(classifier, ouroboros):
    # three matches in two tokens: 1.0 after the cap, then x0.7
    result = classifier.classify("quickfast simple", ouroboros)
    assert result.keywords == ["quick", "fast", "simple"]
    assert result.confidence == pytest.approx(0.7)
    assert result.approach == FixApproach.QUICK_FIX


def test_long_intent_scales_confidence_up(classifier, ouroboros):
    text = "I would like to carefully refactor this module so that the imports stop looping"
    result = classifier.classify(text, ouroboros)
    assert result.approach == FixApproach.REFACTOR
    assert result.confidence == pytest.approx(0.84)


# ── fallback ──────────────────────────────────────────────


def test_vague_intent_falls_back_to_smell_default(classifier, manipulator):
    result = classifier.classify("do it", manipulator)
    assert result.approach == FixApproach.SECURITY_FIX
    assert result.confidence == 0.6


def test_single_keyword_too_short_falls_back(classifier, ouroboros):
    """0.7 * 0.7 = 0.49 is below the threshold, so the smell default applies."""
    result = classifier.classify("refactor", ouroboros)
    assert result.approach == FixApproach.REFACTOR
    assert result.confidence == 0.6
    assert result.complexity == Complexity.COMPLEX


def test_long_keywordless_intent_reaches_threshold(classifier, catalog):
    """0.5 * 1.2 lands exactly on the threshold: standard approach, no fallback needed."""
    text = "hmm I am not really sure what I should do about this ghost here honestly"
    result = classifier.classify(text, catalog.get("stale_cache"))
    assert result.approach == FixApproach.STANDARD
    assert result.confidence == 0.6


@pytest.mark.parametrize("smell,expected", [
    (SmellCategory.CIRCULAR_DEPENDENCY, FixApproach.REFACTOR),
    (SmellCategory.STALE_CACHE, FixApproach.STANDARD),
    (SmellCategory.UNBOUNDED_RECURSION, FixApproach.STANDARD),
    (SmellCategory.PROMPT_INJECTION, FixApproach.SECURITY_FIX),
    (SmellCategory.DATA_LEAK, FixApproach.SECURITY_FIX),
    (SmellCategory.DEAD_CODE, FixApproach.REFACTOR),
    (SmellCategory.RACE_CONDITION, FixApproach.STANDARD),
    (SmellCategory.MEMORY_LEAK, FixApproach.OPTIMIZATION),
])
def test_default_approach_table(smell, expected):
    assert default_approach(smell) == expected


# ── complexity and urgency ────────────────────────────────


def test_complexity_first_rule_wins(classifier, ouroboros):
    result = classifier.classify("a basic but comprehensive fix", ouroboros)
    assert result.complexity == Complexity.SIMPLE


def test_complexity_advanced(classifier, ouroboros):
    result = classifier.classify("an advanced dependency graph rewrite", ouroboros)
    assert result.complexity == Complexity.ADVANCED


def test_complexity_defaults_to_moderate(classifier, ouroboros):
    result = classifier.classify("break the import cycle", ouroboros)
    assert result.complexity == Complexity.MODERATE


def test_urgency_levels(classifier, ouroboros):
    assert classifier.classify("fix this urgent issue", ouroboros).urgency == "high"
    assert classifier.classify("clean it eventually", ouroboros).urgency == "low"
    assert classifier.classify("fix it when possible", ouroboros).urgency == "low"
    assert classifier.classify("fix the import cycle", ouroboros).urgency == "medium"
