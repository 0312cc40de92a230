"""In-process registry of live game runs, shared by the HTTP and MCP surfaces.

Data layout:
  data/
    config.json      Engine settings (see haunted_debug.config)
    runs/            Saved run snapshots, one JSON file per run id

Call init_runs() before use. Live runs are kept in memory; save_run() and
restore_run() move them to and from disk.
"""

from pathlib import Path

from haunted_debug.config import EngineConfig, load_config, update_config
from haunted_debug.context import GameRunContext
from haunted_debug.encounter import EncounterStateMachine
from haunted_debug.llm import HttpContentGenerator
from haunted_debug.models import RunSnapshot
from haunted_debug.rng import RandomStream
from haunted_debug.storage import SnapshotStore

_data_dir: Path | None = None
_store: SnapshotStore | None = None
_runs: dict[str, EncounterStateMachine] = {}


def init_runs(data_dir: Path) -> None:
    global _data_dir, _store
    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    _store = SnapshotStore(data_dir)
    _runs.clear()


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_runs() before using runs"
    return _data_dir


def store() -> SnapshotStore:
    assert _store is not None, "Call init_runs() before using runs"
    return _store


def get_config() -> EngineConfig:
    return load_config(data_dir() / "config.json")


def set_config(fields: dict) -> EngineConfig:
    return update_config(data_dir() / "config.json", fields)


def _register(ctx: GameRunContext) -> EncounterStateMachine:
    machine = EncounterStateMachine(ctx)
    _runs[ctx.run_id] = machine
    return machine


def new_run(seed: int | None = None, skill_level: int | None = None) -> EncounterStateMachine:
    config = get_config()
    rng = RandomStream(seed if seed is not None else config.seed)
    ctx = GameRunContext(config, rng=rng, content=HttpContentGenerator.from_config(config))
    if skill_level is not None:
        ctx.set_skill_level(skill_level)
    return _register(ctx)


def get_run(run_id: str) -> EncounterStateMachine | None:
    return _runs.get(run_id)


def list_runs() -> list[str]:
    return list(_runs)


def save_run(run_id: str) -> RunSnapshot | None:
    machine = _runs.get(run_id)
    if machine is None:
        return None
    snapshot = machine.ctx.snapshot()
    store().save(snapshot)
    return snapshot


def restore_run(run_id: str) -> EncounterStateMachine | None:
    snapshot = store().load(run_id)
    if snapshot is None:
        return None
    config = get_config()
    ctx = GameRunContext.restore(snapshot, config, content=HttpContentGenerator.from_config(config))
    return _register(ctx)
