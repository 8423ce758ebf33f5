from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .models import ExportStats
from .normalize import process_for_ai
from .storage import ensure_dir, export_filename, raw_filename, write_json
from .sync_client import DEFAULT_SYNC_URL, SyncClient, load_snapshot_file

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    export_path: Path
    raw_path: Path | None
    stats: ExportStats
    project_count: int


def fetch_snapshot(token: str, base_url: str = DEFAULT_SYNC_URL) -> dict[str, Any]:
    with SyncClient(token, base_url=base_url) as client:
        return client.fetch_snapshot()


def write_export(
    raw: dict[str, Any],
    output_dir: Path,
    drop_empty_sections: bool = False,
    save_raw: bool = False,
) -> ExportResult:
    export = process_for_ai(raw, drop_empty_sections=drop_empty_sections)
    out_dir = ensure_dir(output_dir)

    export_path = out_dir / export_filename(export.meta.generated_at)
    write_json(export_path, export.to_json_dict())
    logger.info("Wrote export to %s", export_path)

    raw_path = None
    if save_raw:
        raw_path = out_dir / raw_filename(export.meta.generated_at)
        write_json(raw_path, raw)

    return ExportResult(
        export_path=export_path,
        raw_path=raw_path,
        stats=export.meta.stats,
        project_count=len(export.projects_tree),
    )


def run_export(
    output_dir: Path,
    token: str | None = None,
    source: Path | None = None,
    drop_empty_sections: bool = False,
    save_raw: bool = False,
    base_url: str = DEFAULT_SYNC_URL,
) -> ExportResult:
    """Fetch (or load) a snapshot, normalize it and write the export file.

    Nothing is written when the fetch fails.
    """
    if source is not None:
        raw = load_snapshot_file(source)
    else:
        if not token:
            raise ValueError("A Todoist API token is required when no snapshot file is given.")
        raw = fetch_snapshot(token, base_url=base_url)
    return write_export(raw, output_dir, drop_empty_sections=drop_empty_sections, save_raw=save_raw)
