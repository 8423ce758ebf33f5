from __future__ import annotations

import logging
import os
from pathlib import Path

import httpx
import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .export import fetch_snapshot, write_export
from .sync_client import DEFAULT_SYNC_URL, SnapshotError, load_snapshot_file

app = typer.Typer(help="Todoist full-snapshot AI export CLI")
console = Console()


@app.callback()
def main() -> None:
    """Todoist full-snapshot AI export CLI."""


def _load_dotenv() -> None:
    load_dotenv(find_dotenv(usecwd=True))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def export(
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for the export file"),
    from_file: Path | None = typer.Option(
        None, "--from-file", exists=True, dir_okay=False, help="Use a saved sync snapshot instead of the API"
    ),
    drop_empty_sections: bool = typer.Option(
        False, "--drop-empty-sections", help="Omit sections that have no tasks"
    ),
    save_raw: bool = typer.Option(False, "--save-raw", help="Also write the raw sync snapshot"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Download a full Todoist snapshot and write the AI-ready export."""
    _load_dotenv()
    _configure_logging(verbose)

    token = os.getenv("TODOIST_API_TOKEN")
    if from_file is None and not token:
        raise typer.BadParameter("TODOIST_API_TOKEN is required in the environment.")

    base_dir = output_dir or Path(os.getenv("TDX_OUTPUT_DIR", "."))
    base_url = os.getenv("TODOIST_SYNC_URL", DEFAULT_SYNC_URL)

    try:
        if from_file is not None:
            raw = load_snapshot_file(from_file)
        else:
            console.print("Starting Todoist download...")
            raw = fetch_snapshot(token, base_url=base_url)
            console.print(f"Download complete. Processing {len(raw.get('items') or [])} items...")
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 401:
            raise typer.BadParameter("TODOIST_API_TOKEN is invalid or unauthorized.") from exc
        raise typer.BadParameter(f"Todoist API error: {exc.response.status_code} {exc.response.text}") from exc
    except httpx.RequestError as exc:
        raise typer.BadParameter(f"Network error while connecting to Todoist: {exc}") from exc
    except SnapshotError as exc:
        raise typer.BadParameter(f"Could not read snapshot: {exc}") from exc

    result = write_export(raw, base_dir, drop_empty_sections=drop_empty_sections, save_raw=save_raw)

    console.print(f"Export saved to: {result.export_path}")
    if result.raw_path:
        console.print(f"Raw snapshot saved to: {result.raw_path}")

    table = Table(title="Export summary")
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    table.add_row("Root projects", str(result.project_count))
    table.add_row("Projects", str(result.stats.total_projects))
    table.add_row("Total tasks", str(result.stats.total_tasks))
    table.add_row("Labels", str(result.stats.total_labels))
    table.add_row("Filters", str(result.stats.total_filters))
    console.print(table)


if __name__ == "__main__":
    app()
