"""Encounter sessions: one player-vs-anomaly exchange from first words to outcome.

States:

    not_started → in_dialogue → generating_patch → reviewing_patch
                → applying_patch → completed | failed

reviewing_patch may go back to generating_patch when the player revises the
intent or asks for an alternative. completed and failed are terminal. A
session only fails on structurally invalid input; risky choices cost gauge
points instead.
An operation interrupted while it waits on a collaborator (cancelled, or the
call raised) puts the session back in the state it started from.

Only one non-terminal session per anomaly exists at a time; start() returns
the live one instead of opening a second.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

from haunted_debug.actions import resolve_action, resolve_rejected_diff
from haunted_debug.changes import ChangeGenerator, ChangeValidationError, validate_change
from haunted_debug.context import GameRunContext
from haunted_debug.effects import EffectCalculator
from haunted_debug.intent import IntentClassifier
from haunted_debug.llm import generate_with_fallback
from haunted_debug.models import (
    ActionOutcome,
    Anomaly,
    ContentResponse,
    Cue,
    DialogueLine,
    EncounterSession,
    EncounterState,
    GeneratedChange,
    LintIssue,
    MeterPrediction,
    PlayerAction,
)
from haunted_debug.prompts import EXPLANATION_PROMPT, build_context, render_prompt
from haunted_debug.risk import RiskScorer

logger = logging.getLogger(__name__)

S = EncounterState

TRANSITIONS: dict[EncounterState, frozenset[EncounterState]] = {
    S.NOT_STARTED: frozenset({S.IN_DIALOGUE, S.FAILED}),
    S.IN_DIALOGUE: frozenset({S.GENERATING_PATCH, S.FAILED}),
    S.GENERATING_PATCH: frozenset({S.REVIEWING_PATCH, S.FAILED}),
    S.REVIEWING_PATCH: frozenset({S.GENERATING_PATCH, S.APPLYING_PATCH, S.FAILED}),
    S.APPLYING_PATCH: frozenset({S.COMPLETED, S.FAILED}),
    S.COMPLETED: frozenset(),
    S.FAILED: frozenset(),
}

_EVALUATED_ACTIONS = (PlayerAction.APPLY, PlayerAction.REFACTOR)


class InvalidTransitionError(RuntimeError):
    """Raised when an operation is not allowed in the session's current state."""


class RunFinishedError(RuntimeError):
    """Raised when a run whose outcome is already decided is asked to keep playing."""


class EncounterStateMachine:
    def __init__(
        self,
        ctx: GameRunContext,
        classifier: IntentClassifier | None = None,
        scorer: RiskScorer | None = None,
        calculator: EffectCalculator | None = None,
        generator: ChangeGenerator | None = None,
    ) -> None:
        self.ctx = ctx
        self.classifier = classifier or IntentClassifier()
        self.scorer = scorer or RiskScorer()
        self.calculator = calculator or EffectCalculator()
        self.generator = generator or ChangeGenerator()

    # ------------------------------------------------------------------
    # Session bookkeeping
    # ------------------------------------------------------------------

    def get(self, session_id: str) -> EncounterSession:
        try:
            return self.ctx.encounters[session_id]
        except KeyError:
            raise KeyError(f"Unknown encounter: {session_id}") from None

    def active_for(self, anomaly_id: str) -> EncounterSession | None:
        for session in self.ctx.encounters.values():
            if session.anomaly_id == anomaly_id and not session.is_terminal:
                return session
        return None

    def _transition(self, session: EncounterSession, target: EncounterState) -> None:
        if target not in TRANSITIONS[session.state]:
            raise InvalidTransitionError(
                f"Encounter {session.id} cannot go from {session.state.value} to {target.value}"
            )
        logger.debug("encounter %s %s -> %s", session.id, session.state.value, target.value)
        session.state = target
        session.updated_at = time.time()

    def _require(self, session: EncounterSession, *states: EncounterState) -> None:
        if session.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(
                f"Encounter {session.id} is {session.state.value}; expected one of: {allowed}"
            )

    def _ensure_running(self) -> None:
        if self.ctx.outcome is not None:
            raise RunFinishedError(f"Run {self.ctx.run_id} is over: {self.ctx.outcome.value}")

    def _fail(self, session: EncounterSession, reason: str) -> None:
        session.error = reason
        self._transition(session, S.FAILED)
        logger.warning("encounter %s failed: %s", session.id, reason)

    def _anomaly(self, session: EncounterSession) -> Anomaly:
        return self.ctx.catalog.get(session.anomaly_id)

    @contextmanager
    def _resumable(self, session: EncounterSession, resume: EncounterState) -> Iterator[None]:
        """Put the session back in `resume` if the work inside does not finish."""
        interim = session.state
        try:
            yield
        except BaseException:
            if session.state == interim:
                logger.warning(
                    "encounter %s interrupted in %s, back to %s", session.id, interim.value, resume.value,
                )
                session.state = resume
                session.updated_at = time.time()
            raise

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start(self, anomaly_id: str) -> EncounterSession:
        self._ensure_running()
        anomaly = self.ctx.catalog.get(anomaly_id)
        existing = self.active_for(anomaly_id)
        if existing is not None:
            return existing

        session = EncounterSession(anomaly_id=anomaly.id)
        self.ctx.encounters[session.id] = session
        self._transition(session, S.IN_DIALOGUE)
        self.ctx.emit_cue(Cue(kind="anomaly_appears", intensity=anomaly.severity / 10, source=anomaly.id))
        return session

    async def talk(self, session_id: str, text: str) -> ContentResponse:
        self._ensure_running()
        session = self.get(session_id)
        self._require(session, S.IN_DIALOGUE, S.REVIEWING_PATCH)
        anomaly = self._anomaly(session)

        turn = sum(1 for line in session.dialogue if line.speaker == "anomaly")
        context = build_context(anomaly, self.ctx.gauge.state, text, turn)
        response, _ = await generate_with_fallback(self.ctx.content, anomaly, context, text)
        session.dialogue.append(DialogueLine(speaker="player", text=text))
        session.dialogue.append(DialogueLine(speaker="anomaly", text=response.content))
        session.updated_at = time.time()
        return response

    async def submit_intent(
        self, session_id: str, text: str, pattern_type: str | None = None
    ) -> GeneratedChange:
        """Turn the player's intent into a change awaiting review."""
        self._ensure_running()
        session = self.get(session_id)
        self._require(session, S.IN_DIALOGUE, S.REVIEWING_PATCH)
        anomaly = self._anomaly(session)
        resume = session.state
        self._transition(session, S.GENERATING_PATCH)

        with self._resumable(session, resume):
            analysis = self.classifier.classify(text, anomaly)
            risk = self.scorer.score(anomaly, analysis, self.ctx.skill_level)
            effects = self.calculator.calculate(anomaly, analysis, risk, pattern_type)
            change = self.generator.generate(anomaly, analysis, risk, effects, self.ctx.rng, pattern_type)
            change.explanation = await self._explain(anomaly, change)
            reviewed = await self._review(session, change)
        session.intent = text
        session.analysis = analysis
        return reviewed

    async def propose_change(self, session_id: str, change: GeneratedChange) -> GeneratedChange:
        """Accept a change built elsewhere. Invalid changes fail the session."""
        self._ensure_running()
        session = self.get(session_id)
        self._require(session, S.IN_DIALOGUE, S.REVIEWING_PATCH)
        resume = session.state
        self._transition(session, S.GENERATING_PATCH)
        try:
            validate_change(change)
        except ChangeValidationError as e:
            self._fail(session, str(e))
            raise
        with self._resumable(session, resume):
            return await self._review(session, change)

    async def request_alternative(self, session_id: str) -> GeneratedChange:
        self._ensure_running()
        session = self.get(session_id)
        self._require(session, S.REVIEWING_PATCH)
        self._transition(session, S.GENERATING_PATCH)
        with self._resumable(session, S.REVIEWING_PATCH):
            alternative = self.generator.alternative_of(session.change, self.ctx.rng)
            return await self._review(session, alternative)

    def preview(self, session_id: str) -> MeterPrediction:
        session = self.get(session_id)
        self._require(session, S.REVIEWING_PATCH)
        return self.ctx.gauge.predict_effects(session.change.expected_effects)

    async def choose_action(self, session_id: str, action: PlayerAction) -> ActionOutcome:
        self._ensure_running()
        session = self.get(session_id)
        self._require(session, S.REVIEWING_PATCH)
        change = session.change

        try:
            validate_change(change)
        except ChangeValidationError as e:
            self._fail(session, str(e))
            raise
        self._transition(session, S.APPLYING_PATCH)

        errors: list[str] = []
        if action in _EVALUATED_ACTIONS:
            with self._resumable(session, S.REVIEWING_PATCH):
                errors = await self._apply_diff(change)

        if errors:
            logger.warning("diff for %s was refused: %s", change.id, "; ".join(errors))
            resolution = resolve_rejected_diff(action, errors)
        else:
            resolution = resolve_action(action, change, self.ctx.rng)
        chain = None
        if action in _EVALUATED_ACTIONS and not errors:
            chain = self.ctx.event_engine.simulate(
                change.risk_score,
                resolution.effects,
                self.ctx.gauge.state,
                self.ctx.rng,
                security_flag=change.security_flag,
                performance_flag=change.performance_flag,
            )
        result = self.ctx.gauge.apply_effects(
            resolution.effects, chain, description=f"{action.value}: {change.description}",
        )
        if resolution.resolves_anomaly:
            self.ctx.mark_resolved(session.anomaly_id)
            self.ctx.emit_cue(Cue(kind="anomaly_resolved", intensity=0.6, source=session.anomaly_id))

        session.chain = chain
        self._transition(session, S.COMPLETED)
        session.outcome = ActionOutcome(
            action=action,
            success=resolution.success,
            resolved=resolution.resolves_anomaly,
            effects=resolution.effects,
            applied=result.applied,
            chain_id=chain.id if chain is not None else None,
            feedback=resolution.feedback,
            learning_points=resolution.learning_points,
            game_over=self.ctx.check_game_over(),
        )
        return session.outcome

    # ------------------------------------------------------------------
    # Collaborator calls
    # ------------------------------------------------------------------

    async def _review(self, session: EncounterSession, change: GeneratedChange) -> GeneratedChange:
        session.lint_issues = await self._lint(change)
        session.change = change
        self._transition(session, S.REVIEWING_PATCH)
        return change

    async def _explain(self, anomaly: Anomaly, change: GeneratedChange) -> str:
        """Ask the content backend for an explanation, keeping the local one on failure."""
        if self.ctx.content is None:
            return change.explanation
        prompt = render_prompt(EXPLANATION_PROMPT, {
            "anomaly": {"smell": anomaly.smell.value},
            "approach": change.approach.value,
            "complexity": change.complexity.value,
            "risk": f"{change.risk_score:.2f}",
            "diff": change.diff_text,
        })
        context = build_context(anomaly, self.ctx.gauge.state, prompt=prompt)
        try:
            response = await self.ctx.content(anomaly, context, "")
        except Exception as e:
            logger.warning("explanation generation failed for %s: %s", anomaly.id, e)
            return change.explanation
        return response.content or change.explanation

    async def _lint(self, change: GeneratedChange) -> list[LintIssue]:
        try:
            report = await self.ctx.lint.run(change.diff_text, self.ctx.config.lint_ruleset)
        except Exception as e:
            logger.warning("lint service failed for %s: %s", change.id, e)
            return []
        return report.issues

    async def _apply_diff(self, change: GeneratedChange) -> list[str]:
        """Errors reported by the diff-apply service. A crashed service reports none."""
        try:
            result = await self.ctx.diff_applier.apply(change.diff_text, change.anomaly_id)
        except Exception as e:
            logger.warning("diff apply service failed for %s: %s", change.id, e)
            return []
        if result.success:
            return []
        return result.errors or ["Diff could not be applied"]
