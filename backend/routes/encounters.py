"""Encounter endpoints, nested under /api/runs/{run_id}/encounters/."""

from fastapi import APIRouter, HTTPException

from haunted_debug.changes import ChangeValidationError
from haunted_debug.encounter import EncounterStateMachine, InvalidTransitionError, RunFinishedError

from .models import ActionBody, IntentBody, StartEncounter, TalkBody
from .runs import run_or_404

router = APIRouter()


def _session_or_404(machine: EncounterStateMachine, session_id: str):
    try:
        return machine.get(session_id)
    except KeyError:
        raise HTTPException(404, "Encounter not found")


@router.post("/runs/{run_id}/encounters")
async def start_encounter(run_id: str, body: StartEncounter):
    """Start (or resume) the encounter with an anomaly."""
    machine = run_or_404(run_id)
    try:
        session = machine.start(body.anomaly_id)
    except KeyError:
        raise HTTPException(404, "Anomaly not found")
    except RunFinishedError as e:
        raise HTTPException(409, str(e))
    return session.model_dump(mode="json")


@router.get("/runs/{run_id}/encounters/{session_id}")
async def get_encounter(run_id: str, session_id: str):
    """Get an encounter session."""
    machine = run_or_404(run_id)
    return _session_or_404(machine, session_id).model_dump(mode="json")


@router.post("/runs/{run_id}/encounters/{session_id}/talk")
async def talk(run_id: str, session_id: str, body: TalkBody):
    """Say something to the anomaly."""
    machine = run_or_404(run_id)
    _session_or_404(machine, session_id)
    try:
        response = await machine.talk(session_id, body.message)
    except (InvalidTransitionError, RunFinishedError) as e:
        raise HTTPException(409, str(e))
    return response.model_dump()


@router.post("/runs/{run_id}/encounters/{session_id}/intent")
async def submit_intent(run_id: str, session_id: str, body: IntentBody):
    """Describe a fix; returns the generated change for review."""
    machine = run_or_404(run_id)
    _session_or_404(machine, session_id)
    try:
        change = await machine.submit_intent(session_id, body.intent, body.pattern_type)
    except (InvalidTransitionError, RunFinishedError) as e:
        raise HTTPException(409, str(e))
    return change.model_dump(mode="json")


@router.post("/runs/{run_id}/encounters/{session_id}/alternative")
async def request_alternative(run_id: str, session_id: str):
    """Swap the change under review for an alternative."""
    machine = run_or_404(run_id)
    _session_or_404(machine, session_id)
    try:
        change = await machine.request_alternative(session_id)
    except (InvalidTransitionError, RunFinishedError) as e:
        raise HTTPException(409, str(e))
    return change.model_dump(mode="json")


@router.get("/runs/{run_id}/encounters/{session_id}/preview")
async def preview(run_id: str, session_id: str):
    """Predict the gauges after applying the change under review."""
    machine = run_or_404(run_id)
    _session_or_404(machine, session_id)
    try:
        return machine.preview(session_id).model_dump()
    except InvalidTransitionError as e:
        raise HTTPException(409, str(e))


@router.post("/runs/{run_id}/encounters/{session_id}/action")
async def choose_action(run_id: str, session_id: str, body: ActionBody):
    """Apply, refactor, question or reject the change under review."""
    machine = run_or_404(run_id)
    _session_or_404(machine, session_id)
    try:
        outcome = await machine.choose_action(session_id, body.action)
    except ChangeValidationError as e:
        raise HTTPException(400, str(e))
    except (InvalidTransitionError, RunFinishedError) as e:
        raise HTTPException(409, str(e))
    return outcome.model_dump(mode="json")
