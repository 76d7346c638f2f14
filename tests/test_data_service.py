from __future__ import annotations

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest import mock

import pytest

from crm_dashboard.advisory import StaticAdvisor
from crm_dashboard.advisory.base import CHAT_ANALYSIS_FAILED
from crm_dashboard.daterange import DateRange
from crm_dashboard.data import LeadDataService, NoticeKind
from crm_dashboard.metrics import filter_leads
from crm_dashboard.models import LeadStatus
from crm_dashboard.stores import InMemoryLeadStore, StoreConnectionError, StoreError

NOW = datetime(2024, 3, 15, 12, tzinfo=timezone.utc)


class FlakyStore(InMemoryLeadStore):
    """In-memory store that fails the operations listed in ``failing``."""

    def __init__(self, records=None) -> None:
        super().__init__(records)
        self.failing: set[str] = set()

    def list_leads(self):
        if "list" in self.failing:
            raise StoreConnectionError("network unreachable")
        return super().list_leads()

    def insert_lead(self, record):
        if "insert" in self.failing:
            raise StoreError("insert rejected", status_code=500)
        super().insert_lead(record)

    def update_lead(self, lead_id, record):
        if "update" in self.failing:
            raise StoreError("update rejected", status_code=500)
        super().update_lead(lead_id, record)

    def delete_lead(self, lead_id):
        if "delete" in self.failing:
            raise StoreError("delete rejected", status_code=500)
        super().delete_lead(lead_id)


def _seed() -> list[dict]:
    return [
        {"id": "1", "name": "Ana Gomez", "created_at": "2024-03-02T10:00:00+00:00", "call_date": "2024-03-10T10:00:00+00:00"},
        {"id": "2", "name": "Luis Diaz", "created_at": "2024-03-01T10:00:00+00:00"},
    ]


@pytest.fixture()
def executor():
    pool = ThreadPoolExecutor(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


def _service(store, executor, **kwargs) -> LeadDataService:
    ids = (f"L-test{index:05d}" for index in itertools.count(1))
    kwargs.setdefault("clock", lambda: NOW)
    kwargs.setdefault("id_factory", lambda: next(ids))
    return LeadDataService(store, executor=executor, tz=timezone.utc, **kwargs)


def test_fetch_all_loads_newest_first(executor) -> None:
    service = _service(FlakyStore(_seed()), executor)

    result = service.fetch_all().result()

    assert result.ok
    assert [lead.id for lead in service.leads] == ["1", "2"]
    assert service.loading is False


def test_fetch_failure_keeps_previous_state(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor)
    service.fetch_all().result()
    store.failing.add("list")

    result = service.fetch_all().result()

    assert result.notice is not None
    assert result.notice.kind is NoticeKind.CONNECTIVITY
    assert [lead.id for lead in service.leads] == ["1", "2"]
    assert service.last_error == result.notice
    assert service.loading is False


def test_fetch_skips_malformed_records(executor) -> None:
    store = FlakyStore(_seed() + [{"id": "3", "name": "", "created_at": "2024-03-03T00:00:00+00:00"}])
    service = _service(store, executor)

    service.fetch_all().result()

    assert [lead.id for lead in service.leads] == ["1", "2"]


def test_create_is_visible_before_the_store_confirms(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor)
    service.fetch_all().result()
    service.open_intake()

    future = service.create({"name": "Nora Paz", "origin": "Instagram"})

    assert service.leads[0].name == "Nora Paz"
    assert service.leads[0].id == "L-test00001"
    assert service.intake_open is False
    assert future.result().ok
    assert any(record["id"] == "L-test00001" for record in store.list_leads())


def test_round_trip_create_then_list_all(executor) -> None:
    store = FlakyStore()
    service = _service(store, executor)

    service.create(
        {"name": "Ana Gomez", "call_date": "2024-03-01", "origin": "TikTok", "qualification": "1"}
    ).result()
    service.fetch_all().result()

    matches = [lead for lead in filter_leads(service.leads, DateRange.all_time(), "Ana Gomez", now=NOW)]
    assert len(matches) == 1
    assert matches[0].id
    assert matches[0].status is LeadStatus.NEW


def test_failed_create_reconciles_with_store(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor)
    service.fetch_all().result()
    store.failing.add("insert")

    result = service.create({"name": "Nora Paz"}).result()

    assert result.notice.kind is NoticeKind.WRITE
    assert result.reconciled is True
    assert [lead.id for lead in service.leads] == ["1", "2"]
    assert service.notices[-1].message == "Could not save the lead to the database."


def test_failed_update_without_resync_keeps_local_edit(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor, resync_on_write_failure=False)
    service.fetch_all().result()
    store.failing.add("update")

    result = service.update_field("1", "status", "Cerrado").result()

    assert result.notice.kind is NoticeKind.WRITE
    assert result.reconciled is False
    assert service.get("1").status is LeadStatus.CLOSED


def test_update_field_persists_coerced_value(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor)
    service.fetch_all().result()

    assert service.update_field("2", "collected_amount", "750").result().ok

    stored = {record["id"]: record for record in store.list_leads()}
    assert stored["2"]["collected_amount"] == 750.0
    assert service.get("2").collected_amount == 750.0


def test_update_field_for_unknown_lead_raises(executor) -> None:
    service = _service(FlakyStore(), executor)

    with pytest.raises(KeyError):
        service.update_field("missing", "notes", "hello")


def test_delete_closes_detail_view(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor)
    service.fetch_all().result()
    service.open_detail("1")

    assert service.delete("1").result().ok

    assert service.detail_lead_id is None
    assert [lead.id for lead in service.leads] == ["2"]
    assert [record["id"] for record in store.list_leads()] == ["2"]


def test_failed_delete_refetch_restores_lead(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor, resync_on_write_failure=False)
    service.fetch_all().result()
    store.failing.add("delete")
    gate = threading.Event()
    executor.submit(gate.wait, 5)

    future = service.delete("1")
    assert service.get("1") is None
    gate.set()
    result = future.result()

    assert result.notice.kind is NoticeKind.DELETE
    assert result.reconciled is True
    assert service.get("1") is not None


def test_listeners_receive_change_events(executor) -> None:
    service = _service(FlakyStore(_seed()), executor)
    events: list[str] = []
    unsubscribe = service.subscribe(events.append)

    service.fetch_all().result()
    unsubscribe()
    service.fetch_all().result()

    assert events == ["loading", "loading", "leads"]


def test_clear_error_resets_last_error(executor) -> None:
    store = FlakyStore()
    store.failing.add("list")
    service = _service(store, executor)
    service.fetch_all().result()
    assert service.last_error is not None

    service.clear_error()

    assert service.last_error is None
    assert len(service.notices) == 1


def test_chat_analysis_is_stored_on_the_lead(executor) -> None:
    store = FlakyStore(_seed())
    advisor = StaticAdvisor()
    service = _service(store, executor, advisor=advisor)
    service.fetch_all().result()

    text = service.request_chat_analysis("1", b"\x89PNG").result()

    assert "Ana Gomez" in text
    assert service.get("1").chat_analysis == text
    stored = {record["id"]: record for record in store.list_leads()}
    assert stored["1"]["chat_analysis"] == text
    assert advisor.calls == [("chat", "1")]


def test_chat_analysis_fallback_is_not_stored(executor) -> None:
    store = FlakyStore(_seed())
    advisor = mock.Mock()
    advisor.analyze_chat_screenshot.return_value = CHAT_ANALYSIS_FAILED
    service = _service(store, executor, advisor=advisor)
    service.fetch_all().result()

    assert service.request_chat_analysis("1", b"img").result() == CHAT_ANALYSIS_FAILED
    assert service.get("1").chat_analysis is None


def test_strategy_and_summary_are_not_persisted(executor) -> None:
    store = FlakyStore(_seed())
    service = _service(store, executor, advisor=StaticAdvisor())
    service.fetch_all().result()

    assert "BUYER PROFILE" in service.request_strategy("2").result()
    assert service.request_summary("2").result() == "Luis Diaz: New"
    assert service.get("2").chat_analysis is None


def test_advisory_requests_need_an_advisor(executor) -> None:
    service = _service(FlakyStore(_seed()), executor)
    service.fetch_all().result()

    with pytest.raises(RuntimeError):
        service.request_strategy("1")
