"""Core domain models.

Every engine component and the storage layer operate on these types.
Pydantic is used for validation and serialisation at every data boundary;
value objects that must not change after creation are frozen.
"""

from __future__ import annotations

import time
import uuid
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from haunted_debug.rng import RandomState


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Closed enums
# ---------------------------------------------------------------------------

class SmellCategory(str, Enum):
    CIRCULAR_DEPENDENCY = "circular_dependency"
    STALE_CACHE = "stale_cache"
    UNBOUNDED_RECURSION = "unbounded_recursion"
    PROMPT_INJECTION = "prompt_injection"
    DATA_LEAK = "data_leak"
    DEAD_CODE = "dead_code"
    RACE_CONDITION = "race_condition"
    MEMORY_LEAK = "memory_leak"


class FixApproach(str, Enum):
    QUICK_FIX = "quick_fix"
    STANDARD = "standard"
    REFACTOR = "refactor"
    SECURITY_FIX = "security_fix"
    OPTIMIZATION = "optimization"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    ADVANCED = "advanced"


class Impact(str, Enum):
    MINIMAL = "minimal"
    LOCALIZED = "localized"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"
    SYSTEM_WIDE = "system_wide"


class EventType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    SECURITY_VIOLATION = "security_violation"
    PERFORMANCE_IMPACT = "performance_impact"


class EncounterState(str, Enum):
    NOT_STARTED = "not_started"
    IN_DIALOGUE = "in_dialogue"
    GENERATING_PATCH = "generating_patch"
    REVIEWING_PATCH = "reviewing_patch"
    APPLYING_PATCH = "applying_patch"
    COMPLETED = "completed"
    FAILED = "failed"


class PlayerAction(str, Enum):
    APPLY = "apply"
    REFACTOR = "refactor"
    QUESTION = "question"
    REJECT = "reject"


class GameOverCondition(str, Enum):
    KERNEL_PANIC = "kernel_panic"
    MORAL_INVERSION = "moral_inversion"
    VICTORY = "victory"


Urgency = Literal["low", "medium", "high"]
RiskBand = Literal["low", "medium", "high"]


# ---------------------------------------------------------------------------
# Anomaly content
# ---------------------------------------------------------------------------

class Effects(BaseModel):
    """A pair of gauge deltas."""

    model_config = ConfigDict(frozen=True)

    stability: int = 0
    insight: int = 0

    def __add__(self, other: Effects) -> Effects:
        return Effects(
            stability=self.stability + other.stability,
            insight=self.insight + other.insight,
        )


class FixPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    description: str = ""
    base_risk: float = Field(ge=0.0, le=1.0)
    base_stability_effect: int
    base_insight_effect: int


class Anomaly(BaseModel):
    """A defect entity haunting one or more rooms. Loaded once per run."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    severity: int = Field(ge=1, le=10)
    smell: SmellCategory
    description: str = ""
    fix_patterns: list[FixPattern] = Field(default_factory=list)
    rooms: list[str] = Field(default_factory=list)
    hints: list[str] = Field(default_factory=list)
    dialogue_prompts: list[str] = Field(default_factory=list)

    def pattern(self, pattern_type: str | None = None) -> FixPattern | None:
        """Return the named fix pattern, falling back to the first one."""
        if pattern_type is not None:
            for p in self.fix_patterns:
                if p.type == pattern_type:
                    return p
        return self.fix_patterns[0] if self.fix_patterns else None


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------

class IntentAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    approach: FixApproach
    confidence: float = Field(ge=0.0, le=1.0)
    complexity: Complexity
    urgency: Urgency
    keywords: list[str] = Field(default_factory=list)


class GeneratedChange(BaseModel):
    """A proposed fix, owned by its encounter session until applied or discarded."""

    id: str = Field(default_factory=lambda: new_id("change"))
    anomaly_id: str
    diff_text: str
    description: str
    explanation: str = ""
    risk_score: float = Field(ge=0.0, le=1.0)
    expected_effects: Effects
    approach: FixApproach = FixApproach.STANDARD
    complexity: Complexity = Complexity.MODERATE
    impact: Impact = Impact.MODERATE
    alternatives: list[str] = Field(default_factory=list)
    educational_notes: list[str] = Field(default_factory=list)
    anomaly_response: str = ""
    security_flag: bool = False
    performance_flag: bool = False


class CompileEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("event"))
    type: EventType
    timestamp: float = Field(default_factory=time.time)
    description: str
    effects: Effects
    deterministic: bool
    is_cascade: bool = False


class EventChain(BaseModel):
    """All compile events from one evaluation pass."""

    id: str = Field(default_factory=lambda: new_id("chain"))
    events: list[CompileEvent] = Field(default_factory=list)
    total_effects: Effects = Field(default_factory=Effects)
    cascade_depth: int = 0

    @classmethod
    def from_events(cls, events: list[CompileEvent]) -> EventChain:
        total = Effects()
        for event in events:
            total = total + event.effects
        return cls(
            events=list(events),
            total_effects=total,
            cascade_depth=sum(1 for e in events if e.is_cascade),
        )


# ---------------------------------------------------------------------------
# Gauges
# ---------------------------------------------------------------------------

class MeterState(BaseModel):
    model_config = ConfigDict(frozen=True)

    stability: int = Field(default=60, ge=0, le=100)
    insight: int = Field(default=10, ge=0, le=100)


class MeterHistoryEntry(BaseModel):
    timestamp: float = Field(default_factory=time.time)
    previous: MeterState
    current: MeterState
    requested: Effects
    applied: Effects
    description: str = ""
    chain_id: str | None = None
    ethics_violation: bool = False


class StabilityChange(BaseModel):
    kind: Literal["stability_change"] = "stability_change"
    previous: MeterState
    current: MeterState
    effects: Effects

    @property
    def name(self) -> str:
        return "stability_change"


class StabilityCritical(BaseModel):
    kind: Literal["stability_critical"] = "stability_critical"
    previous: MeterState
    current: MeterState
    effects: Effects

    @property
    def name(self) -> str:
        return "stability_critical"


class InsightChange(BaseModel):
    kind: Literal["insight_change"] = "insight_change"
    previous: MeterState
    current: MeterState
    effects: Effects

    @property
    def name(self) -> str:
        return "insight_change"


class InsightThreshold(BaseModel):
    kind: Literal["insight_threshold"] = "insight_threshold"
    threshold: Literal[25, 50, 75]
    previous: MeterState
    current: MeterState
    effects: Effects

    @property
    def name(self) -> str:
        return f"insight_threshold_{self.threshold}"


MeterHook = Annotated[
    Union[StabilityChange, StabilityCritical, InsightChange, InsightThreshold],
    Field(discriminator="kind"),
]


class MeterPrediction(BaseModel):
    current: MeterState
    predicted: MeterState
    applied: Effects
    risk_band: RiskBand
    game_over_risk: bool
    unlocked_features: list[str] = Field(default_factory=list)


class MeterStatus(BaseModel):
    stability: int
    insight: int
    stability_label: str
    insight_label: str
    unlocked_features: list[str]
    is_critical: bool
    is_warning: bool
    game_over_risk: float


class RunWarning(BaseModel):
    kind: Literal["low_stability", "risky_pattern", "learning_plateau"]
    message: str
    severity: Literal["warning", "info"] = "warning"


# ---------------------------------------------------------------------------
# Collaborator boundary values
# ---------------------------------------------------------------------------

class DiffApplyResult(BaseModel):
    success: bool
    errors: list[str] = Field(default_factory=list)


class LintIssue(BaseModel):
    line: int
    severity: Literal["error", "warning", "info"]
    message: str


class LintReport(BaseModel):
    passed: bool
    issues: list[LintIssue] = Field(default_factory=list)


class ContentResponse(BaseModel):
    content: str
    hints: list[str] = Field(default_factory=list)


class Cue(BaseModel):
    """A fire-and-forget sound/visual cue request."""

    kind: str
    intensity: float = Field(default=0.5, ge=0.0, le=1.0)
    source: str = ""


# ---------------------------------------------------------------------------
# Encounters
# ---------------------------------------------------------------------------

class DialogueLine(BaseModel):
    speaker: Literal["player", "anomaly"]
    text: str


class ActionOutcome(BaseModel):
    action: PlayerAction
    success: bool
    resolved: bool
    effects: Effects  # after action adjustment, before compile events
    applied: Effects = Field(default_factory=Effects)  # after clamping
    chain_id: str | None = None
    feedback: str = ""
    learning_points: list[str] = Field(default_factory=list)
    game_over: GameOverCondition | None = None


class EncounterSession(BaseModel):
    id: str = Field(default_factory=lambda: new_id("encounter"))
    anomaly_id: str
    state: EncounterState = EncounterState.NOT_STARTED
    started_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
    intent: str | None = None
    analysis: IntentAnalysis | None = None
    change: GeneratedChange | None = None
    chain: EventChain | None = None
    outcome: ActionOutcome | None = None
    dialogue: list[DialogueLine] = Field(default_factory=list)
    lint_issues: list[LintIssue] = Field(default_factory=list)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (EncounterState.COMPLETED, EncounterState.FAILED)


class RunSnapshot(BaseModel):
    """Serializable state of one game run."""

    run_id: str
    seed: int | None = None
    rng_state: RandomState | None = None
    gauges: MeterState
    history: list[MeterHistoryEntry] = Field(default_factory=list)
    event_history: list[EventChain] = Field(default_factory=list)
    encounters: list[EncounterSession] = Field(default_factory=list)
    current_room: str
    resolved_anomalies: list[str] = Field(default_factory=list)
    skill_level: int = 50
    outcome: GameOverCondition | None = None
    saved_at: float = Field(default_factory=time.time)
