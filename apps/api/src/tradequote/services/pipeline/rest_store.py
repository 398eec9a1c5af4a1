from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from tradequote.services.pipeline.store import JobStoreError
from tradequote.services.pipeline.types import Job, JobStatus


def _parse_date(value: Any) -> date | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid date value: {value!r}")
    return date.fromisoformat(value[:10])


def _parse_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp value: {value!r}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_amount(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid amount value: {value!r}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount value: {value!r}") from exc
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")
    return amount


def job_from_row(row: dict[str, Any]) -> Job:
    client = row.get("clients")
    client_name = client.get("name") if isinstance(client, dict) else None

    return Job(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        status=JobStatus(row["status"]),
        total_amount=_parse_amount(row.get("total_amount")),
        scheduled_date=_parse_date(row.get("scheduled_date")),
        client_id=str(row["client_id"]) if row.get("client_id") is not None else None,
        client_name=client_name if isinstance(client_name, str) else None,
        created_at=_parse_datetime(row.get("created_at")),
    )


class RestJobStore:
    """JobStore for a hosted PostgREST-style backend (the `jobs` resource)."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self._headers(),
            timeout=self._timeout_seconds,
            transport=self._transport,
        )

    async def list_jobs(self) -> list[Job]:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self._base_url}/jobs",
                    params={"select": "*,clients(name)", "order": "created_at.desc"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise JobStoreError(str(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise JobStoreError(f"Invalid jobs payload: {exc}") from exc
        if not isinstance(payload, list):
            raise JobStoreError("Invalid jobs payload: expected a list of rows")

        jobs: list[Job] = []
        for row in payload:
            if not isinstance(row, dict):
                raise JobStoreError("Invalid jobs payload: row is not an object")
            try:
                jobs.append(job_from_row(row))
            except (KeyError, ValueError) as exc:
                raise JobStoreError(f"Invalid jobs payload: {exc}") from exc
        return jobs

    async def update_job_status(self, job_id: str, status: JobStatus) -> None:
        try:
            async with self._client() as client:
                response = await client.patch(
                    f"{self._base_url}/jobs",
                    params={"id": f"eq.{job_id}"},
                    json={"status": JobStatus(status).value},
                    headers={"Prefer": "return=representation"},
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise JobStoreError(str(exc)) from exc

        try:
            updated = response.json()
        except ValueError as exc:
            raise JobStoreError(f"Invalid update response: {exc}") from exc
        if not isinstance(updated, list) or len(updated) != 1:
            raise JobStoreError(f"job not found: {job_id}")
