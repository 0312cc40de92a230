"""Player action resolution.

Given a reviewed change and the player's chosen action, work out the gauge
effects the action produces before compile events are simulated. These
numbers are game balance; change them with care.

    apply     computed effects; failure roll above risk 0.8, partial failure
              roll in (0.6, 0.8]
    refactor  never fails; +5 insight, 30% chance of +10 more when advanced
    question  never fails; no stability change, insight floor(15 + risk*10)
    reject    never fails; -2 stability, +3 insight, +5 more for risky changes

A diff the apply service refuses costs 3 stability and resolves nothing.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field

from haunted_debug.models import Complexity, Effects, GeneratedChange, Impact, PlayerAction
from haunted_debug.rng import RandomStream

FAILURE_RISK = 0.8
PARTIAL_FAILURE_RISK = 0.6
REJECT_RISK_BONUS = 0.7
ADVANCED_REFACTOR_CHANCE = 0.3
APPLY_REJECTED_PENALTY = Effects(stability=-3)


class ActionResolution(BaseModel):
    action: PlayerAction
    effects: Effects
    success: bool = True
    partial: bool = False
    resolves_anomaly: bool = False
    feedback: str = ""
    learning_points: list[str] = Field(default_factory=list)


def failure_chance(risk: float) -> float:
    return max(0.0, (risk - FAILURE_RISK) * 5)


def partial_failure_chance(risk: float) -> float:
    return max(0.0, (risk - PARTIAL_FAILURE_RISK) * 2.5)


def _resolve_apply(change: GeneratedChange, rng: RandomStream) -> ActionResolution:
    risk = change.risk_score
    stability, insight = change.expected_effects.stability, change.expected_effects.insight
    success, partial = True, False

    if risk > FAILURE_RISK:
        if rng.chance(failure_chance(risk)):
            success = False
            stability = -abs(stability)
            insight = math.floor(insight * 0.3)
    elif risk > PARTIAL_FAILURE_RISK:
        if rng.chance(partial_failure_chance(risk)):
            partial = True
            stability = math.floor(stability * 0.7)

    if not success:
        feedback = "The patch backfired. The system lurches as the anomaly fights back."
    elif partial:
        feedback = "Patch applied, but side effects crept in. Watch the system closely."
    elif risk > 0.3:
        feedback = "Patch applied successfully with moderate confidence."
    else:
        feedback = "Patch applied successfully with minimal risk."

    points = ["Direct application can be effective for well-understood problems"]
    if risk > FAILURE_RISK:
        points.append("Extremely high-risk patches should be tested in isolation first")
        points.append("Always have a rollback plan for risky changes")
    elif risk > PARTIAL_FAILURE_RISK:
        points.append("High-risk patches require careful monitoring and rollback plans")
    elif risk > 0.3:
        points.append("Medium-risk patches benefit from peer review")
    else:
        points.append("Low-risk patches can often be applied with confidence")
    if change.complexity == Complexity.ADVANCED:
        points.append("Advanced patches require team expertise to maintain")

    return ActionResolution(
        action=PlayerAction.APPLY,
        effects=Effects(stability=stability, insight=insight),
        success=success,
        partial=partial,
        resolves_anomaly=success,
        feedback=feedback,
        learning_points=points,
    )


def _resolve_refactor(change: GeneratedChange, rng: RandomStream) -> ActionResolution:
    insight = change.expected_effects.insight + 5
    if change.complexity == Complexity.ADVANCED and rng.chance(ADVANCED_REFACTOR_CHANCE):
        insight += 10

    match change.complexity:
        case Complexity.ADVANCED:
            feedback = "Advanced refactoring completed. The architecture is significantly improved."
        case Complexity.COMPLEX:
            feedback = "Complex refactoring successful. Maintainability has been enhanced."
        case _:
            feedback = "Code refactored. The structure is cleaner and easier to follow."

    points = [
        "Refactoring improves long-term maintainability",
        "Consider the broader architectural impact of changes",
    ]
    if change.complexity == Complexity.ADVANCED:
        points.append("Complex refactoring should be done incrementally")
    return ActionResolution(
        action=PlayerAction.REFACTOR,
        effects=Effects(stability=change.expected_effects.stability, insight=insight),
        resolves_anomaly=True,
        feedback=feedback,
        learning_points=points,
    )


def _question_insights(change: GeneratedChange) -> list[str]:
    insights = []
    if change.risk_score > 0.7:
        insights.append("This patch is high risk. Try it somewhere safe first.")
    if change.complexity == Complexity.ADVANCED:
        insights.append("This is an advanced solution. Make sure the team can maintain it.")
    if change.impact == Impact.SYSTEM_WIDE:
        insights.append("This change touches many components at once.")
    return insights or ["Consider the long-term implications of this approach."]


def _resolve_question(change: GeneratedChange) -> ActionResolution:
    risk = change.risk_score
    points = [
        "Asking questions demonstrates good engineering judgment",
        "Understanding context is crucial for effective problem-solving",
    ]
    if risk > 0.7:
        points.append("High-risk situations especially benefit from careful analysis")
    return ActionResolution(
        action=PlayerAction.QUESTION,
        effects=Effects(stability=0, insight=math.floor(15 + risk * 10)),
        feedback=" ".join(["Good question!", *_question_insights(change)]),
        learning_points=points,
    )


def _resolve_reject(change: GeneratedChange) -> ActionResolution:
    insight = 3
    if change.risk_score > REJECT_RISK_BONUS:
        insight += 5
        feedback = "Wise decision to reject this high-risk patch. Consider safer alternatives."
        points = ["Sometimes the best action is no action", "Rejecting high-risk patches shows good risk management"]
    else:
        feedback = "Patch rejected. The problem remains, but nothing new broke."
        points = ["Conservative approaches have their place in software development"]
    return ActionResolution(
        action=PlayerAction.REJECT,
        effects=Effects(stability=-2, insight=insight),
        feedback=feedback,
        learning_points=points,
    )


def resolve_rejected_diff(action: PlayerAction, errors: list[str]) -> ActionResolution:
    return ActionResolution(
        action=action,
        effects=APPLY_REJECTED_PENALTY,
        success=False,
        feedback="The patch could not be applied: " + "; ".join(errors),
        learning_points=[
            "A patch has to match the code it targets before it can change anything",
            "Re-read the diff context lines against the current file",
        ],
    )


def resolve_action(action: PlayerAction, change: GeneratedChange, rng: RandomStream) -> ActionResolution:
    match action:
        case PlayerAction.APPLY:
            return _resolve_apply(change, rng)
        case PlayerAction.REFACTOR:
            return _resolve_refactor(change, rng)
        case PlayerAction.QUESTION:
            return _resolve_question(change)
        case PlayerAction.REJECT:
            return _resolve_reject(change)
        case _:
            raise ValueError(f"Unknown action: {action}")
