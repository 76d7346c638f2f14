"""Data layer owning the in-memory lead list and mirroring edits to the store."""
from __future__ import annotations

import collections
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from ..advisory import base as advisory_base
from ..advisory.base import AdvisoryService, ImageInput
from ..daterange import local_timezone
from ..models import Lead, lead_from_draft, new_lead_id
from ..stores.base import LeadStore

LOGGER = logging.getLogger(__name__)

Listener = Callable[[str], None]

_ADVISORY_FALLBACKS = {
    advisory_base.CHAT_ANALYSIS_FAILED,
    advisory_base.CHAT_ANALYSIS_EMPTY,
}


class NoticeKind(str, Enum):
    CONNECTIVITY = "connectivity"
    WRITE = "write"
    DELETE = "delete"


@dataclass(frozen=True)
class Notice:
    """User-facing description of a failed remote call."""

    kind: NoticeKind
    message: str
    detail: str = ""
    lead_id: Optional[str] = None
    at: datetime = field(default_factory=lambda: datetime.now(local_timezone()))


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a data layer operation once its remote call has finished."""

    operation: str
    lead_id: Optional[str] = None
    notice: Optional[Notice] = None
    reconciled: bool = False

    @property
    def ok(self) -> bool:
        return self.notice is None


MESSAGES = {
    "fetch": "Could not connect to the lead store.",
    "create": "Could not save the lead to the database.",
    "update": "Could not update the lead in the database.",
    "delete": "Could not delete the lead.",
}


class LeadDataService:
    """Applies every mutation locally first, then persists it on a worker thread.

    Each operation returns a :class:`~concurrent.futures.Future` resolving to an
    :class:`OperationResult`. Failures are also appended to :attr:`notices`, a
    bounded stream whose newest unresolved entry is :attr:`last_error`.
    """

    def __init__(
        self,
        store: LeadStore,
        *,
        advisor: Optional[AdvisoryService] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Callable[[], str] = new_lead_id,
        resync_on_write_failure: bool = True,
        max_notices: int = 20,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self._store = store
        self._advisor = advisor
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="crm-store")
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(tz or local_timezone()))
        self._id_factory = id_factory
        self._resync_on_write_failure = resync_on_write_failure

        self._lock = threading.RLock()
        self._leads: List[Lead] = []
        self._loading_depth = 0
        self._notices: Deque[Notice] = collections.deque(maxlen=max_notices)
        self._last_error: Optional[Notice] = None
        self._listeners: List[Listener] = []

        self.intake_open = False
        self.detail_lead_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Read-only views
    @property
    def leads(self) -> List[Lead]:
        with self._lock:
            return list(self._leads)

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading_depth > 0

    @property
    def notices(self) -> List[Notice]:
        with self._lock:
            return list(self._notices)

    @property
    def last_error(self) -> Optional[Notice]:
        with self._lock:
            return self._last_error

    @property
    def advisor(self) -> Optional[AdvisoryService]:
        return self._advisor

    def get(self, lead_id: str) -> Optional[Lead]:
        with self._lock:
            for lead in self._leads:
                if lead.id == lead_id:
                    return lead
        return None

    def clear_error(self) -> None:
        with self._lock:
            self._last_error = None
        self._notify("error")

    # ------------------------------------------------------------------
    # Listeners
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for change events; returns an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:  # pragma: no cover - listener bugs must not break the data layer
                LOGGER.exception("Listener %r failed handling %s", listener, event)

    # ------------------------------------------------------------------
    # View surfaces
    def open_intake(self) -> None:
        self.intake_open = True
        self._notify("view")

    def open_detail(self, lead_id: str) -> None:
        self.detail_lead_id = lead_id
        self._notify("view")

    def close_detail(self) -> None:
        self.detail_lead_id = None
        self._notify("view")

    # ------------------------------------------------------------------
    # Operations
    def fetch_all(self) -> "Future[OperationResult]":
        """Reload every lead from the store, keeping current state on failure."""

        with self._lock:
            self._last_error = None
        self._begin_loading()
        return self._executor.submit(self._fetch_remote, loading_started=True)

    def create(self, draft: Mapping[str, Any]) -> "Future[OperationResult]":
        """Prepend a new lead built from intake values, then persist it."""

        lead = lead_from_draft(draft, lead_id=self._id_factory(), created_at=self._clock(), tz=self._tz)
        with self._lock:
            self._leads.insert(0, lead)
            self.intake_open = False
        self._notify("leads")
        self._notify("view")
        return self._executor.submit(self._persist, "create", lead.id, lead.to_record())

    def update(self, lead: Lead) -> "Future[OperationResult]":
        """Replace the in-memory lead with the same id, then persist the full record."""

        self._replace_local(lead)
        return self._executor.submit(self._persist, "update", lead.id, lead.to_record())

    def _replace_local(self, lead: Lead) -> None:
        with self._lock:
            for index, current in enumerate(self._leads):
                if current.id == lead.id:
                    self._leads[index] = lead
                    break
            else:
                LOGGER.warning("Updating lead %s which is not loaded locally", lead.id)
        self._notify("leads")

    def update_field(self, lead_id: str, field_name: str, value: Any) -> "Future[OperationResult]":
        """Apply a single detail-view edit, coercing form values to the field type."""

        return self.update_fields(lead_id, {field_name: value})

    def update_fields(self, lead_id: str, changes: Mapping[str, Any]) -> "Future[OperationResult]":
        lead = self._require(lead_id)
        return self.update(lead.with_changes(tz=self._tz, **changes))

    def delete(self, lead_id: str) -> "Future[OperationResult]":
        """Remove the lead locally, then remotely; a remote failure forces a re-fetch."""

        closed_detail = False
        with self._lock:
            self._leads = [lead for lead in self._leads if lead.id != lead_id]
            if self.detail_lead_id == lead_id:
                self.detail_lead_id = None
                closed_detail = True
        self._notify("leads")
        if closed_detail:
            self._notify("view")
        return self._executor.submit(self._persist, "delete", lead_id, None)

    # ------------------------------------------------------------------
    # AI boundary
    def request_chat_analysis(self, lead_id: str, image: ImageInput) -> "Future[str]":
        """Analyse a chat screenshot and store the text on ``chat_analysis``."""

        advisor = self._require_advisor()
        lead = self._require(lead_id)

        def work() -> str:
            text = advisor.analyze_chat_screenshot(image, lead)
            if text in _ADVISORY_FALLBACKS:
                return text
            current = self.get(lead_id)
            if current is None:
                LOGGER.info("Lead %s was removed before its chat analysis finished", lead_id)
                return text
            updated = current.with_changes(chat_analysis=text)
            self._replace_local(updated)
            self._persist("update", lead_id, updated.to_record())
            return text

        return self._executor.submit(work)

    def request_strategy(self, lead_id: str) -> "Future[str]":
        """Generate a closing strategy; the text is not persisted."""

        advisor = self._require_advisor()
        lead = self._require(lead_id)
        return self._executor.submit(advisor.generate_lead_strategy, lead)

    def request_summary(self, lead_id: str) -> "Future[str]":
        advisor = self._require_advisor()
        lead = self._require(lead_id)
        return self._executor.submit(advisor.summarize_lead, lead)

    def _require_advisor(self) -> AdvisoryService:
        if self._advisor is None:
            raise RuntimeError("No advisory service is configured")
        return self._advisor

    def _require(self, lead_id: str) -> Lead:
        lead = self.get(lead_id)
        if lead is None:
            raise KeyError(f"Lead '{lead_id}' is not loaded")
        return lead

    # ------------------------------------------------------------------
    # Worker side
    def _fetch_remote(self, *, loading_started: bool = False) -> OperationResult:
        if not loading_started:
            self._begin_loading()
        try:
            records = self._store.list_leads()
        except Exception as exc:
            notice = self._report(NoticeKind.CONNECTIVITY, MESSAGES["fetch"], exc)
            return OperationResult("fetch", notice=notice)
        finally:
            self._end_loading()

        leads: List[Lead] = []
        for record in records:
            try:
                leads.append(Lead.from_record(record, tz=self._tz))
            except (ValueError, TypeError) as exc:
                LOGGER.warning("Skipping malformed lead record %r: %s", record.get("id"), exc)
        with self._lock:
            self._leads = leads
        LOGGER.info("Loaded %s leads", len(leads))
        self._notify("leads")
        return OperationResult("fetch")

    def _persist(self, operation: str, lead_id: str, record: Optional[Dict[str, Any]]) -> OperationResult:
        try:
            if operation == "create":
                self._store.insert_lead(record)  # type: ignore[arg-type]
            elif operation == "update":
                self._store.update_lead(lead_id, record)  # type: ignore[arg-type]
            else:
                self._store.delete_lead(lead_id)
        except Exception as exc:
            kind = NoticeKind.DELETE if operation == "delete" else NoticeKind.WRITE
            notice = self._report(kind, MESSAGES[operation], exc, lead_id=lead_id)
            reconciled = False
            if kind is NoticeKind.DELETE or self._resync_on_write_failure:
                LOGGER.info("Re-fetching leads to reconcile failed %s of %s", operation, lead_id)
                reconciled = self._fetch_remote().ok
            return OperationResult(operation, lead_id=lead_id, notice=notice, reconciled=reconciled)
        LOGGER.debug("Persisted %s of lead %s", operation, lead_id)
        return OperationResult(operation, lead_id=lead_id)

    def _report(self, kind: NoticeKind, message: str, exc: BaseException, *, lead_id: Optional[str] = None) -> Notice:
        LOGGER.error("%s (%s): %s", message, kind.value, exc, exc_info=exc)
        notice = Notice(kind=kind, message=message, detail=str(exc), lead_id=lead_id, at=self._clock())
        with self._lock:
            self._notices.append(notice)
            self._last_error = notice
        self._notify("error")
        return notice

    def _begin_loading(self) -> None:
        with self._lock:
            self._loading_depth += 1
        self._notify("loading")

    def _end_loading(self) -> None:
        with self._lock:
            self._loading_depth = max(0, self._loading_depth - 1)
        self._notify("loading")

    # ------------------------------------------------------------------
    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "LeadDataService":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()
