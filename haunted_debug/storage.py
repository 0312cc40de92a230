"""JSON file storage for run snapshots.

Directory layout:

    {base}/
      runs/
        {run_id}.json    ← RunSnapshot
"""

from __future__ import annotations

from pathlib import Path

from haunted_debug.models import RunSnapshot


class SnapshotStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._runs = base_path / "runs"
        self._runs.mkdir(parents=True, exist_ok=True)

    def _run_file(self, run_id: str) -> Path:
        return self._runs / f"{run_id}.json"

    def save(self, snapshot: RunSnapshot) -> Path:
        path = self._run_file(snapshot.run_id)
        path.write_text(snapshot.model_dump_json(indent=2))
        return path

    def load(self, run_id: str) -> RunSnapshot | None:
        path = self._run_file(run_id)
        if not path.exists():
            return None
        return RunSnapshot.model_validate_json(path.read_text())

    def list_runs(self) -> list[str]:
        return sorted(p.stem for p in self._runs.glob("*.json"))

    def delete(self, run_id: str) -> bool:
        path = self._run_file(run_id)
        if not path.exists():
            return False
        path.unlink()
        return True
