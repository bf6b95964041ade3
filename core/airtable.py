"""Airtable record fetcher.

Thin, uncached passthrough over the Airtable REST API for the two collections
the dashboard reads (People and Funnel Events) plus single-field writes on
People. Every call is a live request: no retry, no partial results.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterator, List, Mapping, Optional
from urllib.parse import quote

import httpx

from core.config import Settings
from core.errors import UpstreamFetchError
from core.records import CHANGED_AT_FIELD, FunnelEvent, Person

logger = logging.getLogger(__name__)


class AirtableClient:
    def __init__(self, settings: Settings, *, transport: Optional[httpx.BaseTransport] = None):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        # People and events are fetched from separate threads on one client.
        self._client_lock = threading.Lock()

    # ---------- plumbing ----------
    def _http(self) -> httpx.Client:
        # Configuration is checked on every request so a missing token only
        # breaks that request path.
        self._settings.require_airtable()
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    base_url=f"{self._settings.AIRTABLE_API_URL.rstrip('/')}/{self._settings.AIRTABLE_BASE_ID}",
                    headers={
                        "Authorization": f"Bearer {self._settings.AIRTABLE_ACCESS_TOKEN}",
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                    timeout=httpx.Timeout(self._settings.AIRTABLE_TIMEOUT),
                    transport=self._transport,
                )
            return self._client

    def close(self) -> None:
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()

    def __enter__(self) -> "AirtableClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _table_path(table: str, record_id: Optional[str] = None) -> str:
        path = f"/{quote(table, safe='')}"
        if record_id is not None:
            path += f"/{quote(record_id, safe='')}"
        return path

    @staticmethod
    def _error_from_response(response: httpx.Response) -> UpstreamFetchError:
        message = f"Airtable request failed with status {response.status_code}"
        error_type = None
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            err = payload.get("error")
            if isinstance(err, dict):
                error_type = err.get("type")
                message = err.get("message") or error_type or message
            elif isinstance(err, str):
                error_type = err
                message = err
        return UpstreamFetchError(message, status_code=response.status_code, error_type=error_type)

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        client = self._http()
        try:
            response = client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Airtable %s %s failed: %s", method, path, exc)
            raise UpstreamFetchError(str(exc) or type(exc).__name__) from exc
        if response.is_error:
            error = self._error_from_response(response)
            logger.warning("Airtable %s %s returned %s: %s", method, path, response.status_code, error)
            raise error
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Airtable %s %s returned a non-JSON body (%s)", method, path, response.status_code)
            raise UpstreamFetchError(
                f"Airtable returned a non-JSON response ({response.status_code})",
                status_code=response.status_code,
            ) from exc

    def _iter_records(self, table: str, params: Optional[Mapping[str, str]] = None) -> Iterator[Dict[str, Any]]:
        query: Dict[str, str] = dict(params or {})
        while True:
            payload = self._request("GET", self._table_path(table), params=query)
            yield from payload.get("records", []) or []
            offset = payload.get("offset")
            if not offset:
                return
            query["offset"] = offset

    # ---------- public API ----------
    def fetch_people(self) -> List[Person]:
        records = list(self._iter_records(self._settings.AIRTABLE_TABLE_NAME or ""))
        logger.debug("Fetched %d people", len(records))
        return [Person.from_record(r) for r in records]

    def fetch_funnel_events(self) -> List[FunnelEvent]:
        params = {"sort[0][field]": CHANGED_AT_FIELD, "sort[0][direction]": "asc"}
        records = list(self._iter_records(self._settings.AIRTABLE_EVENTS_TABLE, params))
        logger.debug("Fetched %d funnel events", len(records))
        return [FunnelEvent.from_record(r) for r in records]

    def update_field(self, person_id: str, field_name: str, value: Any) -> Person:
        path = self._table_path(self._settings.AIRTABLE_TABLE_NAME or "", person_id)
        payload = self._request("PATCH", path, json={"fields": {field_name: value}})
        logger.info("Updated %s on person %s", field_name, person_id)
        return Person.from_record(payload)

    def update_fields(self, person_id: str, fields: Mapping[str, Any]) -> Person:
        """Apply each field update in order; the last response wins."""
        if not fields:
            raise ValueError("No fields to update")
        items = list(fields.items())
        for field_name, value in items[:-1]:
            self.update_field(person_id, field_name, value)
        field_name, value = items[-1]
        return self.update_field(person_id, field_name, value)
