"""Filesystem storage for run inputs and archived outcomes."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional


def read_json(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"No such input file: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=True, indent=2, default=str), encoding="utf-8")
    return path


class RunArchive:
    """Keeps one JSON document per provisioning run under ``outputs/runs``."""

    def __init__(self, outputs_dir: Path) -> None:
        self.runs_dir = outputs_dir / "runs"

    def path_for(self, run_id: str) -> Path:
        return self.runs_dir / f"{run_id}.json"

    def save(self, payload: Dict[str, Any], path: Optional[Path] = None) -> Path:
        return write_json(path or self.path_for(str(payload["run_id"])), payload)
