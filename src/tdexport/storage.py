from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _file_stamp(generated_at: str) -> str:
    return generated_at.replace(":", "-").replace(".", "-")


def export_filename(generated_at: str) -> str:
    return f"todoist_ai_export_{_file_stamp(generated_at)}.json"


def raw_filename(generated_at: str) -> str:
    return f"todoist_raw_{_file_stamp(generated_at)}.json"
