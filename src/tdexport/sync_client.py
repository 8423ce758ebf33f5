from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from .storage import read_json

logger = logging.getLogger(__name__)

DEFAULT_SYNC_URL = "https://api.todoist.com/sync/v9/sync"
RESOURCE_TYPES = ["projects", "items", "sections", "labels", "filters"]
FULL_SYNC_TOKEN = "*"


class SnapshotError(RuntimeError):
    pass


def _check_snapshot(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise SnapshotError(f"Expected a JSON object from the sync endpoint, got {type(payload).__name__}")
    return payload


class SyncClient:
    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_SYNC_URL,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.headers = {"Authorization": f"Bearer {token}"}
        self.client = httpx.Client(timeout=30.0, headers=self.headers, transport=transport)

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def fetch_snapshot(self) -> dict[str, Any]:
        """Request a full snapshot; the sync token is always the empty-state cursor."""
        data = {
            "sync_token": FULL_SYNC_TOKEN,
            "resource_types": json.dumps(RESOURCE_TYPES),
        }
        logger.debug("POST %s resource_types=%s", self.base_url, data["resource_types"])
        response = self.client.post(self.base_url, data=data)
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise SnapshotError(f"Sync endpoint returned invalid JSON: {exc}") from exc
        snapshot = _check_snapshot(payload)
        logger.info("Fetched snapshot with %d items", len(snapshot.get("items") or []))
        return snapshot


def load_snapshot_file(path: Path) -> dict[str, Any]:
    try:
        payload = read_json(path)
    except ValueError as exc:
        raise SnapshotError(f"{path} is not valid JSON: {exc}") from exc
    return _check_snapshot(payload)
