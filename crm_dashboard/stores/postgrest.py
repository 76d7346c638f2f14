"""Lead store backed by a PostgREST endpoint such as a hosted Supabase project."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .base import StoreConnectionError, StoreError

LOGGER = logging.getLogger(__name__)


@dataclass
class PostgrestConfig:
    """Connection parameters for :class:`PostgrestLeadStore`."""

    url: str
    api_key: str
    table: str = "leads"
    schema_path: str = "/rest/v1"
    timeout_seconds: float = 15.0


class PostgrestLeadStore:
    """CRUD over a single ``leads`` table through the PostgREST HTTP API."""

    name = "postgrest"

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        table: str = "leads",
        timeout_seconds: float = 15.0,
        config: Optional[PostgrestConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if config is None:
            if not url or not api_key:
                raise ValueError("PostgrestLeadStore requires both a url and an api_key.")
            config = PostgrestConfig(url=url, api_key=api_key, table=table, timeout_seconds=timeout_seconds)
        self.config = config
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "apikey": config.api_key,
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    @property
    def endpoint(self) -> str:
        base = self.config.url.rstrip("/")
        return f"{base}{self.config.schema_path}/{self.config.table}"

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "PostgrestLeadStore":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    def list_leads(self) -> List[Dict[str, Any]]:
        response = self._request("GET", params={"select": "*", "order": "created_at.desc"})
        payload = response.json()
        if not isinstance(payload, list):
            raise StoreError(f"Unexpected payload listing leads: {type(payload).__name__}")
        LOGGER.debug("Fetched %s lead records", len(payload))
        return payload

    def insert_lead(self, record: Dict[str, Any]) -> None:
        self._request("POST", json=[record], headers={"Prefer": "return=minimal"})

    def update_lead(self, lead_id: str, record: Dict[str, Any]) -> None:
        self._request(
            "PATCH",
            params={"id": f"eq.{lead_id}"},
            json=record,
            headers={"Prefer": "return=minimal"},
        )

    def delete_lead(self, lead_id: str) -> None:
        self._request("DELETE", params={"id": f"eq.{lead_id}"})

    # ------------------------------------------------------------------
    def _request(self, method: str, **kwargs: Any) -> requests.Response:
        LOGGER.debug("%s %s %s", method, self.endpoint, kwargs.get("params") or "")
        try:
            response = self._session.request(
                method,
                self.endpoint,
                timeout=self.config.timeout_seconds,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise StoreConnectionError(f"Could not reach lead store at {self.config.url}: {exc}") from exc

        if response.status_code >= 400:
            raise StoreError(
                f"Lead store rejected {method} ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )
        return response


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason or "unknown error"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
