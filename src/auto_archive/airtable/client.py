"""Synchronous Airtable REST client.

Every call is bounded by a timeout, throttled to the API's per-second budget
and retried on transport errors, HTTP 429 and 5xx responses. Anything else
that is not a 2xx surfaces as :class:`AirtableApiError`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from auto_archive.utils.http import path_segment
from auto_archive.utils.serialization import dumps_payload

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.airtable.com"
DEFAULT_PAGE_SIZE = 100
_MAX_BACKOFF_SECONDS = 30.0


class AirtableApiError(Exception):
    """Raised when an Airtable call fails after retries."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


def _describe_failure(response: httpx.Response) -> str:
    detail = response.reason_phrase or ""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            detail = ": ".join(
                str(part) for part in (error.get("type"), error.get("message")) if part
            )
        elif error:
            detail = str(error)
    request = response.request
    return f"{request.method} {request.url.path} returned HTTP {response.status_code} {detail}".strip()


def _retry_after_seconds(response: httpx.Response | None) -> float | None:
    if response is None:
        return None
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class AirtableClient:
    """Thin wrapper over ``httpx.Client`` bearing a personal access token."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        min_request_interval_seconds: float = 0.2,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http = httpx.Client(
            base_url=api_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        self._max_retries = max(0, max_retries)
        self._min_interval = max(0.0, min_request_interval_seconds)
        self._sleep = sleep
        self._last_request_at: float | None = None

    def __enter__(self) -> "AirtableClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _throttle(self) -> None:
        if self._min_interval <= 0 or self._last_request_at is None:
            return
        wait = self._min_interval - (time.monotonic() - self._last_request_at)
        if wait > 0:
            self._sleep(wait)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
        payload: object | None = None,
    ) -> dict[str, Any]:
        content = dumps_payload(payload) if payload is not None else None

        for attempt in range(self._max_retries + 1):
            self._throttle()
            response: httpx.Response | None = None
            try:
                response = self._http.request(method, path, params=params, content=content)
            except httpx.TransportError as exc:
                error = AirtableApiError(f"{method} {path} failed: {exc}")
            else:
                if response.is_success:
                    return self._decode(response)
                error = AirtableApiError(_describe_failure(response), response.status_code)
            finally:
                self._last_request_at = time.monotonic()

            if not error.retryable or attempt == self._max_retries:
                raise error

            delay = _retry_after_seconds(response)
            if delay is None:
                delay = min(2.0**attempt, _MAX_BACKOFF_SECONDS)
            logger.warning(
                "Airtable call attempt %d failed (%s); retrying in %.1fs",
                attempt + 1,
                error,
                delay,
            )
            self._sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise AirtableApiError(
                f"{response.request.method} {response.request.url.path} returned invalid JSON",
                response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise AirtableApiError(
                f"{response.request.method} {response.request.url.path} returned "
                f"{type(data).__name__}, expected an object",
                response.status_code,
            )
        return data

    # Metadata API

    def list_tables(self, base_id: str) -> list[dict[str, Any]]:
        data = self.request("GET", f"/v0/meta/bases/{path_segment(base_id)}/tables")
        return list(data.get("tables") or [])

    def create_table(
        self, base_id: str, name: str, fields: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return self.request(
            "POST",
            f"/v0/meta/bases/{path_segment(base_id)}/tables",
            payload={"name": name, "fields": fields},
        )

    def create_field(
        self,
        base_id: str,
        table_id: str,
        name: str,
        field_type: str,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": name, "type": field_type}
        if options is not None:
            payload["options"] = options
        return self.request(
            "POST",
            f"/v0/meta/bases/{path_segment(base_id)}/tables/{path_segment(table_id)}/fields",
            payload=payload,
        )

    def create_base(
        self, name: str, workspace_id: str, tables: list[dict[str, Any]]
    ) -> dict[str, Any]:
        return self.request(
            "POST",
            "/v0/meta/bases",
            payload={"name": name, "workspaceId": workspace_id, "tables": tables},
        )

    # Records API

    def list_records(
        self,
        base_id: str,
        table: str,
        *,
        filter_formula: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        """Fetch every record of a table, following ``offset`` pagination."""
        path = f"/v0/{path_segment(base_id)}/{path_segment(table)}"
        records: list[dict[str, Any]] = []
        offset: str | None = None
        while True:
            params: dict[str, Any] = {"pageSize": page_size}
            if filter_formula:
                params["filterByFormula"] = filter_formula
            if offset:
                params["offset"] = offset
            data = self.request("GET", path, params=params)
            records.extend(data.get("records") or [])
            offset = data.get("offset")
            if not offset:
                return records

    def create_records(
        self, base_id: str, table: str, records: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Create records given as field mappings; returns the created rows."""
        data = self.request(
            "POST",
            f"/v0/{path_segment(base_id)}/{path_segment(table)}",
            payload={"records": [{"fields": fields} for fields in records]},
        )
        return list(data.get("records") or [])

    def update_records(
        self, base_id: str, table: str, updates: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Patch records given as ``{"id": ..., "fields": {...}}`` items."""
        data = self.request(
            "PATCH",
            f"/v0/{path_segment(base_id)}/{path_segment(table)}",
            payload={"records": updates},
        )
        return list(data.get("records") or [])
