from __future__ import annotations

from unittest import mock

import pytest
import requests

from crm_dashboard.stores import PostgrestConfig, PostgrestLeadStore, StoreConnectionError, StoreError


def _response(status_code: int = 200, payload=None, text: str = "") -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    response.reason = "Error"
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def _store(*responses) -> tuple[PostgrestLeadStore, mock.MagicMock]:
    session = mock.MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    store = PostgrestLeadStore("https://project.example.co/", "anon-key", session=session)
    return store, session


def test_store_sets_authentication_headers() -> None:
    store, session = _store()

    assert session.headers["apikey"] == "anon-key"
    assert session.headers["Authorization"] == "Bearer anon-key"
    assert store.endpoint == "https://project.example.co/rest/v1/leads"


def test_list_leads_orders_by_creation_date() -> None:
    store, session = _store(_response(payload=[{"id": "1", "name": "Ana"}]))

    records = store.list_leads()

    assert records == [{"id": "1", "name": "Ana"}]
    session.request.assert_called_once_with(
        "GET",
        "https://project.example.co/rest/v1/leads",
        timeout=15.0,
        params={"select": "*", "order": "created_at.desc"},
    )


def test_insert_update_and_delete_requests() -> None:
    store, session = _store(_response(201), _response(204), _response(204))

    store.insert_lead({"id": "L-1", "name": "Ana"})
    store.update_lead("L-1", {"id": "L-1", "name": "Ana Maria"})
    store.delete_lead("L-1")

    insert_call, update_call, delete_call = session.request.call_args_list
    assert insert_call.args[0] == "POST"
    assert insert_call.kwargs["json"] == [{"id": "L-1", "name": "Ana"}]
    assert update_call.args[0] == "PATCH"
    assert update_call.kwargs["params"] == {"id": "eq.L-1"}
    assert update_call.kwargs["json"]["name"] == "Ana Maria"
    assert delete_call.args[0] == "DELETE"
    assert delete_call.kwargs["params"] == {"id": "eq.L-1"}


def test_http_errors_raise_store_error_with_message() -> None:
    store, _ = _store(_response(400, payload={"message": "invalid input value for enum"}))

    with pytest.raises(StoreError) as excinfo:
        store.insert_lead({"id": "L-1", "name": "Ana", "origin": "Fax"})

    assert excinfo.value.status_code == 400
    assert "invalid input value for enum" in str(excinfo.value)


def test_network_errors_raise_connection_error() -> None:
    session = mock.MagicMock()
    session.headers = {}
    session.request.side_effect = requests.ConnectionError("refused")
    store = PostgrestLeadStore(config=PostgrestConfig(url="https://db.example.co", api_key="k", table="crm_leads"), session=session)

    with pytest.raises(StoreConnectionError):
        store.list_leads()
    assert store.endpoint.endswith("/rest/v1/crm_leads")


def test_unexpected_payload_is_rejected() -> None:
    store, _ = _store(_response(payload={"leads": []}))

    with pytest.raises(StoreError):
        store.list_leads()


def test_credentials_are_required() -> None:
    with pytest.raises(ValueError):
        PostgrestLeadStore("https://db.example.co", None)
