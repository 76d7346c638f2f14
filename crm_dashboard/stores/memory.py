"""Process-local lead store used offline, in tests, and as the UI fallback."""
from __future__ import annotations

import copy
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..daterange import parse_timestamp
from .base import StoreError

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryLeadStore:
    """Keeps lead records in a dict keyed by id."""

    name = "memory"

    def __init__(
        self,
        records: Optional[Iterable[Dict[str, Any]]] = None,
        *,
        seed_path: Optional[str | Path] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = {}
        if seed_path:
            records = list(records or []) + _load_seed(Path(seed_path))
        for record in records or []:
            self._records[str(record["id"])] = dict(record)

    def list_leads(self) -> List[Dict[str, Any]]:
        with self._lock:
            records = [copy.deepcopy(record) for record in self._records.values()]
        records.sort(key=lambda record: parse_timestamp(record.get("created_at")) or _EPOCH, reverse=True)
        return records

    def insert_lead(self, record: Dict[str, Any]) -> None:
        lead_id = str(record["id"])
        with self._lock:
            if lead_id in self._records:
                raise StoreError(f"Lead '{lead_id}' already exists", status_code=409)
            self._records[lead_id] = copy.deepcopy(record)

    def update_lead(self, lead_id: str, record: Dict[str, Any]) -> None:
        with self._lock:
            if lead_id not in self._records:
                raise StoreError(f"Lead '{lead_id}' does not exist", status_code=404)
            self._records[lead_id] = copy.deepcopy(record)

    def delete_lead(self, lead_id: str) -> None:
        with self._lock:
            self._records.pop(lead_id, None)


def _load_seed(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        raise FileNotFoundError(path)
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("leads", [])
    return [dict(record) for record in data]
