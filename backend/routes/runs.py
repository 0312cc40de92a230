"""Game run endpoints: create, inspect, save/restore, move, ethics violations."""

from fastapi import APIRouter, HTTPException

from backend import runs
from haunted_debug.encounter import EncounterStateMachine

from .models import CreateRun, EthicsViolationBody, MoveBody

router = APIRouter()


def run_or_404(run_id: str) -> EncounterStateMachine:
    machine = runs.get_run(run_id)
    if machine is None:
        raise HTTPException(404, "Run not found")
    return machine


def run_view(machine: EncounterStateMachine) -> dict:
    ctx = machine.ctx
    return {
        "run_id": ctx.run_id,
        "current_room": ctx.current_room,
        "resolved_anomalies": ctx.resolved_anomalies,
        "skill_level": ctx.skill_level,
        "outcome": ctx.outcome.value if ctx.outcome else None,
        "status": ctx.gauge.status().model_dump(),
        "warnings": [w.model_dump() for w in ctx.gauge.warnings()],
        "encounters": [s.id for s in ctx.encounters.values()],
    }


@router.post("/runs")
async def create_run(body: CreateRun):
    """Start a new game run."""
    return run_view(runs.new_run(seed=body.seed, skill_level=body.skill_level))


@router.get("/runs/{run_id}")
async def get_run(run_id: str):
    """Get gauges, progress and warnings for a run."""
    return run_view(run_or_404(run_id))


@router.get("/runs/{run_id}/history")
async def get_history(run_id: str):
    """Gauge history and compile event chains for a run."""
    ctx = run_or_404(run_id).ctx
    return {
        "meters": [e.model_dump(mode="json") for e in ctx.gauge.history()],
        "events": [c.model_dump(mode="json") for c in ctx.events.chains()],
    }


@router.post("/runs/{run_id}/save")
async def save_run(run_id: str):
    """Persist a snapshot of the run."""
    snapshot = runs.save_run(run_id)
    if snapshot is None:
        raise HTTPException(404, "Run not found")
    return {"ok": True, "saved_at": snapshot.saved_at}


@router.post("/runs/restore/{run_id}")
async def restore_run(run_id: str):
    """Load a saved run back into memory."""
    machine = runs.restore_run(run_id)
    if machine is None:
        raise HTTPException(404, "Saved run not found")
    return run_view(machine)


@router.post("/runs/{run_id}/room")
async def move_to_room(run_id: str, body: MoveBody):
    """Move to a room and re-check the end conditions."""
    machine = run_or_404(run_id)
    machine.ctx.move_to(body.room)
    return run_view(machine)


@router.post("/runs/{run_id}/ethics-violation")
async def record_ethics_violation(run_id: str, body: EthicsViolationBody):
    """Record an ethics violation reported by the narrative layer."""
    machine = run_or_404(run_id)
    if machine.ctx.outcome is not None:
        raise HTTPException(409, f"Run is over: {machine.ctx.outcome.value}")
    machine.ctx.gauge.record_ethics_violation(body.reason)
    machine.ctx.check_game_over()
    return run_view(machine)
