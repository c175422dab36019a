"""
BigQuery REST client: SQL queries, streaming inserts and dataset labels.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from slo_reporting.clients.base import WarehouseClient
from slo_reporting.clients.http import GoogleAPIClient
from slo_reporting.core.config import settings
from slo_reporting.sync.exceptions import (
    PreconditionFailedError,
    StoreError,
    StoreQueryError,
    StoreWriteError,
)
from slo_reporting.sync.schemas import SLORow

logger = logging.getLogger(__name__)


def _rows_to_dicts(data: Dict[str, Any], fields: List[str]) -> List[Dict[str, Any]]:
    return [
        {name: cell.get("v") for name, cell in zip(fields, row.get("f", []))}
        for row in data.get("rows", [])
    ]


class BigQueryClient(GoogleAPIClient, WarehouseClient):
    service_name = "BigQuery"
    error_class = StoreError

    def __init__(self, project: str, base_url: str = None, **kwargs):
        super().__init__(project, **kwargs)
        self.base_url = (base_url or settings.BIGQUERY_API_BASE_URL).rstrip("/")

    def _dataset_url(self, dataset: str) -> str:
        return f"{self.base_url}/projects/{self.project}/datasets/{dataset}"

    async def query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Run a standard SQL query and return all result rows.

        Polls getQueryResults until the job completes and follows page tokens.
        Cell values are returned as BigQuery encodes them (strings).
        """
        data = await self._request(
            "POST",
            f"{self.base_url}/projects/{self.project}/queries",
            error_class=StoreQueryError,
            json={
                "query": sql,
                "useLegacySql": False,
                "timeoutMs": settings.BIGQUERY_QUERY_TIMEOUT_MS,
                "maxResults": settings.BIGQUERY_MAX_RESULTS,
            },
        )

        job = data.get("jobReference", {})
        results_url = f"{self.base_url}/projects/{self.project}/queries/{job.get('jobId')}"
        rows: List[Dict[str, Any]] = []
        fields: List[str] = []
        pending_polls = 0

        while True:
            if data.get("jobComplete"):
                if data.get("errors"):
                    raise StoreQueryError(f"BigQuery query failed: {data['errors']}")
                if not fields:
                    fields = [f["name"] for f in data.get("schema", {}).get("fields", [])]
                rows.extend(_rows_to_dicts(data, fields))
                page_token = data.get("pageToken")
                if not page_token:
                    break
            else:
                if pending_polls >= settings.BIGQUERY_MAX_POLLS:
                    raise StoreQueryError(
                        f"BigQuery job {job.get('jobId')} did not complete after "
                        f"{pending_polls} polls"
                    )
                pending_polls += 1
                page_token = None

            params = {
                "timeoutMs": settings.BIGQUERY_QUERY_TIMEOUT_MS,
                "maxResults": settings.BIGQUERY_MAX_RESULTS,
            }
            if job.get("location"):
                params["location"] = job["location"]
            if page_token:
                params["pageToken"] = page_token
            data = await self._request(
                "GET", results_url, params=params, error_class=StoreQueryError
            )

        logger.debug(f"BigQuery query returned {len(rows)} rows")
        return rows

    async def write(self, dataset: str, table: str, rows: List[SLORow]) -> None:
        if not rows:
            return

        data = await self._request(
            "POST",
            f"{self._dataset_url(dataset)}/tables/{table}/insertAll",
            error_class=StoreWriteError,
            json={
                "rows": [
                    {"insertId": row.insert_id, "json": row.to_record()} for row in rows
                ]
            },
        )
        if data.get("insertErrors"):
            raise StoreWriteError(
                f"Failed to insert {len(data['insertErrors'])} of {len(rows)} rows "
                f"into {dataset}.{table}: {data['insertErrors']}"
            )
        logger.info(f"Inserted {len(rows)} rows into {dataset}.{table}")

    async def read_label(self, dataset: str, label: str) -> Tuple[Optional[str], str]:
        data = await self._request("GET", self._dataset_url(dataset))
        value = data.get("labels", {}).get(label)
        return value, data.get("etag", "")

    async def write_label(
        self, dataset: str, label: str, value: Optional[str], etag: Optional[str]
    ) -> None:
        headers = {"If-Match": etag} if etag else None
        try:
            await self._send(
                "PATCH",
                self._dataset_url(dataset),
                json={"labels": {label: value or None}},
                headers=headers,
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 412:
                raise PreconditionFailedError(
                    f"Dataset {dataset} was modified concurrently (etag {etag})"
                ) from e
            raise StoreError(
                f"Updating label {label} on dataset {dataset} failed with "
                f"{e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise StoreError(f"Updating label {label} on dataset {dataset} failed: {e}") from e
