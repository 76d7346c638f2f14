"""Interface shared by every lead store adapter."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol


class StoreError(RuntimeError):
    """Raised when the remote store rejects a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreConnectionError(StoreError):
    """Raised when the remote store cannot be reached at all."""


class LeadStore(Protocol):
    """Protocol defining the CRUD surface the data layer relies on."""

    def list_leads(self) -> List[Dict[str, Any]]:  # pragma: no cover - runtime protocol
        """Return every lead record ordered by ``created_at`` descending."""

    def insert_lead(self, record: Dict[str, Any]) -> None:  # pragma: no cover - runtime protocol
        """Persist a new lead record."""

    def update_lead(self, lead_id: str, record: Dict[str, Any]) -> None:  # pragma: no cover - runtime protocol
        """Overwrite the stored record with the given id."""

    def delete_lead(self, lead_id: str) -> None:  # pragma: no cover - runtime protocol
        """Remove the record with the given id."""
