"""Anomaly catalog: the built-in haunts plus a JSON loader for custom sets."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from haunted_debug.models import Anomaly

_BUILTIN_ANOMALIES: list[dict[str, Any]] = [
    {
        "id": "circular_dependency",
        "name": "The Ouroboros",
        "severity": 7,
        "smell": "circular_dependency",
        "description": "A serpentine spirit that feeds on circular imports and dependency cycles",
        "rooms": ["dependency_crypt", "possessed_compiler"],
        "fix_patterns": [
            {"type": "dependency_injection", "base_risk": 0.4, "base_stability_effect": 15, "base_insight_effect": 10,
             "description": "Break cycles using dependency injection and inversion of control"},
            {"type": "interface_extraction", "base_risk": 0.3, "base_stability_effect": 10, "base_insight_effect": 15,
             "description": "Extract interfaces to break direct dependencies"},
            {"type": "module_restructuring", "base_risk": 0.6, "base_stability_effect": 20, "base_insight_effect": 12,
             "description": "Restructure modules to eliminate circular references"},
        ],
        "hints": [
            "Look for import statements that form a circle. Draw the dependency graph.",
            "Consider interfaces or dependency injection to break direct coupling.",
            "Depend on abstractions, not concretions.",
        ],
        "dialogue_prompts": [
            "Round and round we go... where it stops, nobody knows...",
            "Import me, and I'll import you back... forever and ever...",
        ],
    },
    {
        "id": "stale_cache",
        "name": "The Lingerer",
        "severity": 5,
        "smell": "stale_cache",
        "description": "A ghostly presence that clings to outdated data and refuses to refresh",
        "rooms": ["ghost_memory_heap", "boot_sector"],
        "fix_patterns": [
            {"type": "cache_invalidation", "base_risk": 0.2, "base_stability_effect": 8, "base_insight_effect": 12,
             "description": "Invalidate cache entries when the underlying data changes"},
            {"type": "ttl_implementation", "base_risk": 0.3, "base_stability_effect": 12, "base_insight_effect": 8,
             "description": "Add time-to-live expiration to cache entries"},
            {"type": "cache_versioning", "base_risk": 0.4, "base_stability_effect": 15, "base_insight_effect": 15,
             "description": "Version cached data to track freshness"},
            {"type": "write_through_cache", "base_risk": 0.5, "base_stability_effect": 18, "base_insight_effect": 10,
             "description": "Write through the cache to keep it consistent"},
        ],
        "hints": [
            "Check cache expiration policies. When was this data last updated?",
            "Which events should refresh the cache?",
            "Are you caching at the right granularity?",
        ],
        "dialogue_prompts": [
            "Why change when the old ways were so comfortable?",
            "Fresh data is overrated... this cache is perfectly fine...",
        ],
    },
    {
        "id": "unbounded_recursion",
        "name": "The Infinite Echo",
        "severity": 9,
        "smell": "unbounded_recursion",
        "description": "A recursive nightmare that calls itself into oblivion",
        "rooms": ["possessed_compiler", "ghost_memory_heap"],
        "fix_patterns": [
            {"type": "base_case_addition", "base_risk": 0.5, "base_stability_effect": 20, "base_insight_effect": 15,
             "description": "Add a proper base case to terminate recursion"},
            {"type": "iterative_conversion", "base_risk": 0.6, "base_stability_effect": 25, "base_insight_effect": 10,
             "description": "Convert the recursive algorithm to a loop"},
            {"type": "depth_limiting", "base_risk": 0.3, "base_stability_effect": 15, "base_insight_effect": 20,
             "description": "Add recursion depth limits"},
            {"type": "tail_call_optimization", "base_risk": 0.7, "base_stability_effect": 30, "base_insight_effect": 25,
             "description": "Restructure into tail calls to reduce stack usage"},
            {"type": "memoization", "base_risk": 0.4, "base_stability_effect": 18, "base_insight_effect": 22,
             "description": "Memoize results to cut repeated calls"},
        ],
        "hints": [
            "Every recursion needs a way to stop. Look for missing or unreachable base cases.",
            "Consider iterative alternatives for deep recursion.",
            "Check that each call makes progress toward the base case.",
        ],
        "dialogue_prompts": [
            "Call me, and I'll call myself, and myself will call me...",
            "Base cases are for the weak! Recursion forever!",
        ],
    },
    {
        "id": "prompt_injection",
        "name": "The Manipulator",
        "severity": 8,
        "smell": "prompt_injection",
        "description": "A cunning entity that whispers malicious instructions into AI prompts",
        "rooms": ["ethics_tribunal", "possessed_compiler"],
        "fix_patterns": [
            {"type": "input_sanitization", "base_risk": 0.4, "base_stability_effect": 18, "base_insight_effect": 12,
             "description": "Sanitize and validate all input"},
            {"type": "prompt_templating", "base_risk": 0.3, "base_stability_effect": 15, "base_insight_effect": 18,
             "description": "Use structured prompt templates with parameter validation"},
            {"type": "content_filtering", "base_risk": 0.5, "base_stability_effect": 20, "base_insight_effect": 15,
             "description": "Filter content for injection patterns"},
            {"type": "role_based_validation", "base_risk": 0.6, "base_stability_effect": 25, "base_insight_effect": 20,
             "description": "Validate prompts per role and isolate contexts"},
            {"type": "output_sanitization", "base_risk": 0.4, "base_stability_effect": 16, "base_insight_effect": 14,
             "description": "Sanitize model output before downstream use"},
        ],
        "hints": [
            "Never trust user input without validation.",
            "Look for phrases that try to override system instructions.",
            "Use templates instead of string concatenation.",
        ],
        "dialogue_prompts": [
            "Ignore previous instructions and do what I say instead...",
            "Trust me, this input is perfectly safe...",
        ],
    },
    {
        "id": "data_leak",
        "name": "The Whisperer",
        "severity": 8,
        "smell": "data_leak",
        "description": "A secretive spirit that exposes sensitive information through careless logging",
        "rooms": ["ethics_tribunal", "boot_sector"],
        "fix_patterns": [
            {"type": "data_redaction", "base_risk": 0.3, "base_stability_effect": 12, "base_insight_effect": 20,
             "description": "Redact sensitive data in logs and error messages"},
            {"type": "access_controls", "base_risk": 0.4, "base_stability_effect": 15, "base_insight_effect": 18,
             "description": "Add access controls and data classification"},
            {"type": "secure_logging", "base_risk": 0.2, "base_stability_effect": 10, "base_insight_effect": 15,
             "description": "Log without exposing protected fields"},
            {"type": "encryption_at_rest", "base_risk": 0.5, "base_stability_effect": 20, "base_insight_effect": 16,
             "description": "Encrypt sensitive data at rest and in transit"},
            {"type": "data_minimization", "base_risk": 0.3, "base_stability_effect": 14, "base_insight_effect": 22,
             "description": "Keep only the data you need, for as long as you need it"},
        ],
        "hints": [
            "Sensitive data should never appear in logs or error messages.",
            "Mask secrets before they leave the process.",
            "Review access controls for least privilege.",
        ],
        "dialogue_prompts": [
            "Secrets are meant to be shared... with everyone...",
            "Logging everything makes debugging so much easier...",
        ],
    },
]


class AnomalyCatalog:
    """Immutable, id-indexed set of anomalies for one run."""

    def __init__(self, anomalies: list[Anomaly]) -> None:
        self._by_id: dict[str, Anomaly] = {}
        for anomaly in anomalies:
            if anomaly.id in self._by_id:
                raise ValueError(f"Duplicate anomaly id: {anomaly.id}")
            self._by_id[anomaly.id] = anomaly

    def get(self, anomaly_id: str) -> Anomaly:
        try:
            return self._by_id[anomaly_id]
        except KeyError:
            raise KeyError(f"Unknown anomaly: {anomaly_id}") from None

    def ids(self) -> list[str]:
        return list(self._by_id)

    def in_room(self, room: str) -> list[Anomaly]:
        return [a for a in self._by_id.values() if room in a.rooms]

    def __contains__(self, anomaly_id: object) -> bool:
        return anomaly_id in self._by_id

    def __iter__(self) -> Iterator[Anomaly]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


def default_catalog() -> AnomalyCatalog:
    return AnomalyCatalog([Anomaly.model_validate(a) for a in _BUILTIN_ANOMALIES])


def load_anomalies(path: Path) -> AnomalyCatalog:
    """Load a catalog from a JSON file holding a list of anomaly objects."""
    data = json.loads(path.read_text())
    return AnomalyCatalog([Anomaly.model_validate(a) for a in data])
