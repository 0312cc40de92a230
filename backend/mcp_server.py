"""FastMCP server exposing a game run as MCP tools.

Tools:
  - list_anomalies()                       the anomaly catalog
  - start_run(seed, skill_level)           begin a fresh run (replaces the active one)
  - start_encounter(anomaly_id)            open or resume an encounter
  - submit_intent(session_id, intent)      generate a change for review
  - choose_action(session_id, action)      apply / refactor / question / reject
  - meter_status()                         gauges, labels, warnings, outcome
  - predict_effects(stability, insight)    preview a hypothetical delta

The active run is a module-level EncounterStateMachine replaced via set_run()
for tests, or created by start_run().

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from haunted_debug.config import load_config
from haunted_debug.context import GameRunContext
from haunted_debug.encounter import EncounterStateMachine
from haunted_debug.llm import HttpContentGenerator
from haunted_debug.models import Effects, PlayerAction
from haunted_debug.rng import RandomStream

mcp = FastMCP("haunted-debug")

_machine: EncounterStateMachine | None = None


def set_run(machine: EncounterStateMachine | None) -> None:
    """Replace the active run (used in tests)."""
    global _machine
    _machine = machine


def get_run() -> EncounterStateMachine:
    """Return the active run, starting one with default settings if needed."""
    global _machine
    if _machine is None:
        config = load_config()
        _machine = EncounterStateMachine(
            GameRunContext(config, content=HttpContentGenerator.from_config(config))
        )
    return _machine


@mcp.tool()
def list_anomalies() -> list[dict]:
    """List the anomalies haunting the codebase in the active run."""
    return [
        {"id": a.id, "name": a.name, "severity": a.severity, "smell": a.smell.value, "rooms": a.rooms}
        for a in get_run().ctx.catalog
    ]


@mcp.tool()
def start_run(seed: int | None = None, skill_level: int | None = None) -> dict:
    """Start a new game run. Returns its id and starting gauges."""
    config = load_config()
    ctx = GameRunContext(
        config,
        rng=RandomStream(seed if seed is not None else config.seed),
        content=HttpContentGenerator.from_config(config),
    )
    if skill_level is not None:
        ctx.set_skill_level(skill_level)
    set_run(EncounterStateMachine(ctx))
    return {"run_id": ctx.run_id, **ctx.gauge.state.model_dump()}


@mcp.tool()
def start_encounter(anomaly_id: str) -> dict:
    """Open the encounter with an anomaly, or return the one already in progress."""
    return get_run().start(anomaly_id).model_dump(mode="json")


@mcp.tool()
async def submit_intent(session_id: str, intent: str) -> dict:
    """Describe how you want to fix the anomaly. Returns the proposed change."""
    change = await get_run().submit_intent(session_id, intent)
    return change.model_dump(mode="json")


@mcp.tool()
async def choose_action(session_id: str, action: str) -> dict:
    """Act on the change under review: apply, refactor, question or reject."""
    outcome = await get_run().choose_action(session_id, PlayerAction(action))
    return outcome.model_dump(mode="json")


@mcp.tool()
def meter_status() -> dict:
    """Current gauges with labels, unlocked features, warnings and outcome."""
    ctx = get_run().ctx
    return {
        **ctx.gauge.status().model_dump(),
        "warnings": [w.message for w in ctx.gauge.warnings()],
        "outcome": ctx.outcome.value if ctx.outcome else None,
    }


@mcp.tool()
def predict_effects(stability: int, insight: int) -> dict:
    """Preview the gauges after a hypothetical change, without applying it."""
    prediction = get_run().ctx.gauge.predict_effects(Effects(stability=stability, insight=insight))
    return prediction.model_dump()


if __name__ == "__main__":
    mcp.run()
