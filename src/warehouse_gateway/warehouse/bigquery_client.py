"""BigQuery implementation of the warehouse client contract."""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from anyio import to_thread
from google.api_core.exceptions import GoogleAPICallError, GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery
from google.oauth2 import service_account

from warehouse_gateway.config.serving_models import GatewayConfig
from warehouse_gateway.serving import errors
from warehouse_gateway.warehouse.client import (
    DatasetInfo,
    QueryJobResult,
    TableInfo,
    TableMetadata,
)

LOG = logging.getLogger("warehouse_gateway.warehouse.bigquery")

_WAREHOUSE_ERRORS: tuple[type[BaseException], ...] = (GoogleAPIError, GoogleAuthError, OSError)


def build_bigquery_client(cfg: GatewayConfig) -> bigquery.Client:
    """
    Construct a BigQuery client from gateway configuration.

    Explicit service account JSON takes precedence; otherwise application
    default credentials are used.

    Parameters
    ----------
    cfg:
        Validated gateway configuration.

    Returns
    -------
    bigquery.Client
        Client bound to the configured project and location.
    """
    info = cfg.credentials_info()
    if info is not None:
        credentials = service_account.Credentials.from_service_account_info(info)
        return bigquery.Client(
            project=cfg.project_id,
            location=cfg.location,
            credentials=credentials,
        )
    return bigquery.Client(project=cfg.project_id, location=cfg.location)


def _error_message(exc: BaseException) -> str:
    """
    Return the warehouse-reported message for an SDK failure.

    Returns
    -------
    str
        Message text without transport prefixes when available.
    """
    if isinstance(exc, GoogleAPICallError) and exc.message:
        return str(exc.message)
    return str(exc) or type(exc).__name__


def _jsonable(value: Any) -> Any:  # noqa: ANN401
    """
    Make row values JSON-safe; BYTES columns are re-encoded as base64.

    Returns
    -------
    Any
        Value with nested bytes converted to base64 text.
    """
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


def _list_item_location(item: object) -> str | None:
    """
    Read the location reported in a dataset listing entry.

    Listing entries expose location only through their raw resource.

    Returns
    -------
    str | None
        Dataset location when present.
    """
    # DatasetListItem has no public location property.
    properties = getattr(item, "_properties", None) or {}
    location = properties.get("location")
    return str(location) if location is not None else None


@dataclass
class BigQueryWarehouse:
    """Warehouse client running BigQuery SDK calls on worker threads."""

    client: bigquery.Client
    job_timeout_seconds: float | None = None

    @property
    def project_id(self) -> str:
        """Project the client is bound to."""
        return str(self.client.project)

    async def _call[T](self, operation: str, func: Callable[..., T], *args: object) -> T:
        try:
            return await to_thread.run_sync(func, *args)
        except _WAREHOUSE_ERRORS as exc:
            message = _error_message(exc)
            LOG.warning("warehouse.%s failed: %s", operation, message)
            raise errors.upstream_failure(message) from exc

    def _dataset_ref(self, dataset_id: str) -> bigquery.DatasetReference:
        return bigquery.DatasetReference(self.project_id, dataset_id)

    def _run_query_sync(self, sql: str, max_rows: int) -> QueryJobResult:
        job = self.client.query(sql)
        LOG.debug("warehouse job %s started", job.job_id)
        row_iterator = job.result(max_results=max_rows, timeout=self.job_timeout_seconds)
        rows = [_jsonable(dict(row.items())) for row in row_iterator]
        total_bytes = job.total_bytes_processed
        return QueryJobResult(
            rows=rows,
            job_id=str(job.job_id),
            total_bytes_processed=str(total_bytes) if total_bytes is not None else None,
        )

    def _list_datasets_sync(self) -> list[DatasetInfo]:
        return [
            DatasetInfo(id=item.dataset_id, location=_list_item_location(item))
            for item in self.client.list_datasets()
        ]

    def _list_tables_sync(self, dataset_id: str) -> list[TableInfo]:
        return [
            TableInfo(id=item.table_id, type=item.table_type)
            for item in self.client.list_tables(self._dataset_ref(dataset_id))
        ]

    def _get_table_schema_sync(self, dataset_id: str, table_id: str) -> TableMetadata:
        table = self.client.get_table(self._dataset_ref(dataset_id).table(table_id))
        return TableMetadata(
            schema=[schema_field.to_api_repr() for schema_field in table.schema or []],
            num_rows=table.num_rows,
            num_bytes=table.num_bytes,
        )

    async def run_query(self, sql: str, max_rows: int) -> QueryJobResult:
        """
        Submit a query job and fetch up to ``max_rows`` rows.

        Returns
        -------
        QueryJobResult
            Rows, job id and total bytes processed.

        Raises
        ------
        errors.UpstreamError
            When BigQuery rejects or fails the job.
        """
        return await self._call("run_query", self._run_query_sync, sql, max_rows)

    async def list_datasets(self) -> list[DatasetInfo]:
        """
        List datasets of the bound project.

        Returns
        -------
        list[DatasetInfo]
            Datasets in enumeration order.
        """
        return await self._call("list_datasets", self._list_datasets_sync)

    async def list_tables(self, dataset_id: str) -> list[TableInfo]:
        """
        List tables of a dataset.

        Returns
        -------
        list[TableInfo]
            Tables in enumeration order.

        Raises
        ------
        errors.UpstreamError
            When the dataset does not exist or cannot be read.
        """
        return await self._call("list_tables", self._list_tables_sync, dataset_id)

    async def get_table_schema(self, dataset_id: str, table_id: str) -> TableMetadata:
        """
        Fetch schema fields and size statistics of a table.

        Returns
        -------
        TableMetadata
            Fields in their REST representation plus row/byte counts.
        """
        return await self._call(
            "get_table_schema", self._get_table_schema_sync, dataset_id, table_id
        )

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.client.close()


__all__ = ["BigQueryWarehouse", "build_bigquery_client"]
