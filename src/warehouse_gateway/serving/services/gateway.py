"""Query gateway operations composed over a warehouse client."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from warehouse_gateway.serving import errors
from warehouse_gateway.serving.models import (
    CatalogEntry,
    CatalogResponse,
    DatasetsResponse,
    DatasetSummary,
    DatasetTablesResponse,
    QueryRequest,
    QueryResponse,
    SchemaField,
    TableSchemaResponse,
    TableSummary,
)
from warehouse_gateway.warehouse.client import DatasetInfo, TableInfo, WarehouseClient

LOG = logging.getLogger("warehouse_gateway.serving.services.gateway")


@dataclass
class ServiceCallMetrics:
    """Structured metrics describing a gateway operation."""

    name: str
    transport: str
    duration_ms: float
    rows: int | None = None
    dataset: str | None = None
    error: str | None = None


@dataclass
class ServiceObservability:
    """Configuration for operation-level observability."""

    enabled: bool = False
    logger: logging.Logger = field(default_factory=lambda: LOG)

    def record(self, metrics: ServiceCallMetrics) -> None:
        """
        Emit a structured log line for a gateway operation.

        Parameters
        ----------
        metrics:
            Call metrics describing the invocation outcome.
        """
        if not self.enabled or not self.logger.isEnabledFor(logging.INFO):
            return
        payload: dict[str, object] = {
            "name": metrics.name,
            "transport": metrics.transport,
            "duration_ms": round(metrics.duration_ms, 2),
        }
        if metrics.rows is not None:
            payload["rows"] = metrics.rows
        if metrics.dataset is not None:
            payload["dataset"] = metrics.dataset
        if metrics.error is not None:
            payload["error"] = metrics.error
        self.logger.info("service_call %s", payload)


def _extract_row_count(result: object) -> int | None:
    """
    Derive a row count from gateway response shapes.

    Returns
    -------
    int | None
        Row count when inferrable; otherwise ``None``.
    """
    if isinstance(result, QueryResponse):
        return len(result.rows)
    if isinstance(result, CatalogResponse | DatasetTablesResponse):
        return len(result.tables)
    if isinstance(result, DatasetsResponse):
        return len(result.datasets)
    if isinstance(result, TableSchemaResponse):
        return len(result.schema_)
    return None


async def _from_warehouse[T](call: Awaitable[T]) -> T:
    """
    Await a warehouse call, reporting its failures as upstream errors.

    Returns
    -------
    T
        Result of the warehouse call.

    Raises
    ------
    errors.UpstreamError
        When the warehouse fails with a non-gateway exception.
    """
    try:
        return await call
    except errors.GatewayError:
        raise
    except Exception as exc:
        raise errors.upstream_failure(str(exc)) from exc


async def _observe_call[T](
    observability: ServiceObservability | None,
    *,
    name: str,
    dataset: str | None,
    func: Callable[[], Awaitable[T]],
) -> T:
    """
    Await an operation while capturing observability signals.

    Gateway errors propagate unchanged; any other failure happened while
    shaping the response and is reported as an internal failure.

    Returns
    -------
    T
        Result returned by the wrapped operation.

    Raises
    ------
    errors.InternalError
        When the operation fails with a non-gateway exception.
    """
    start = time.perf_counter()
    try:
        result = await func()
    except Exception as exc:
        duration_ms = (time.perf_counter() - start) * 1000
        if observability is not None:
            observability.record(
                ServiceCallMetrics(
                    name=name,
                    transport="warehouse",
                    duration_ms=duration_ms,
                    dataset=dataset,
                    error=exc.__class__.__name__,
                )
            )
        if isinstance(exc, errors.GatewayError):
            raise
        raise errors.internal_failure(str(exc)) from exc
    duration_ms = (time.perf_counter() - start) * 1000
    if observability is not None:
        observability.record(
            ServiceCallMetrics(
                name=name,
                transport="warehouse",
                duration_ms=duration_ms,
                rows=_extract_row_count(result),
                dataset=dataset,
            )
        )
    return result


def _catalog_entries(dataset: DatasetInfo, tables: list[TableInfo]) -> list[CatalogEntry]:
    return [
        CatalogEntry(
            id=table.id,
            dataset_id=dataset.id,
            location=dataset.location,
            type=table.type,
        )
        for table in tables
    ]


@dataclass
class QueryGateway:
    """
    Catalog discovery and query execution against one warehouse project.

    The warehouse handle is shared by all requests and never mutated. Callers
    are expected to pass validated inputs only; see
    ``warehouse_gateway.serving.validation``.
    """

    warehouse: WarehouseClient
    project_id: str
    observability: ServiceObservability | None = None

    async def execute_query(self, request: QueryRequest) -> QueryResponse:
        """
        Run a query job and return at most ``request.max_rows`` rows.

        The SQL text is forwarded unmodified and never retried.

        Returns
        -------
        QueryResponse
            Rows, total bytes processed (as ``totalRows``) and job id.
        """

        async def _run() -> QueryResponse:
            result = await _from_warehouse(
                self.warehouse.run_query(request.sql, request.max_rows)
            )
            return QueryResponse(
                rows=result.rows,
                total_rows=result.total_bytes_processed,
                job_id=result.job_id,
            )

        return await _observe_call(
            self.observability, name="execute_query", dataset=None, func=_run
        )

    async def list_catalog(self) -> CatalogResponse:
        """
        Flatten every table of every dataset into one list.

        Table listings run concurrently, one per dataset; the output keeps the
        dataset enumeration order. A single failing listing fails the whole
        operation and discards completed results.

        Returns
        -------
        CatalogResponse
            Project id plus one entry per table.
        """

        async def _run() -> CatalogResponse:
            datasets = await _from_warehouse(self.warehouse.list_datasets())
            tables_per_dataset = await asyncio.gather(
                *(_from_warehouse(self.warehouse.list_tables(dataset.id)) for dataset in datasets)
            )
            entries = [
                entry
                for dataset, tables in zip(datasets, tables_per_dataset, strict=True)
                for entry in _catalog_entries(dataset, tables)
            ]
            return CatalogResponse(project_id=self.project_id, tables=entries)

        return await _observe_call(
            self.observability, name="list_catalog", dataset=None, func=_run
        )

    async def list_datasets(self) -> DatasetsResponse:
        """
        List datasets of the configured project.

        Returns
        -------
        DatasetsResponse
            Project id plus dataset ids and locations.
        """

        async def _run() -> DatasetsResponse:
            datasets = await _from_warehouse(self.warehouse.list_datasets())
            return DatasetsResponse(
                project_id=self.project_id,
                datasets=[
                    DatasetSummary(id=dataset.id, location=dataset.location)
                    for dataset in datasets
                ],
            )

        return await _observe_call(
            self.observability, name="list_datasets", dataset=None, func=_run
        )

    async def list_tables(self, dataset_id: str) -> DatasetTablesResponse:
        """
        List tables of one dataset.

        Returns
        -------
        DatasetTablesResponse
            Dataset id plus table ids and kinds.
        """

        async def _run() -> DatasetTablesResponse:
            tables = await _from_warehouse(self.warehouse.list_tables(dataset_id))
            return DatasetTablesResponse(
                dataset_id=dataset_id,
                tables=[TableSummary(id=table.id, type=table.type) for table in tables],
            )

        return await _observe_call(
            self.observability, name="list_tables", dataset=dataset_id, func=_run
        )

    async def get_table_schema(self, dataset_id: str, table_id: str) -> TableSchemaResponse:
        """
        Return the schema fields of a table verbatim plus row/byte counts.

        Returns
        -------
        TableSchemaResponse
            Schema fields (empty when the table reports none) and counts.
        """

        async def _run() -> TableSchemaResponse:
            metadata = await _from_warehouse(
                self.warehouse.get_table_schema(dataset_id, table_id)
            )
            return TableSchemaResponse(
                table_id=table_id,
                dataset_id=dataset_id,
                schema_=[SchemaField.model_validate(item) for item in metadata.schema or []],
                num_rows=metadata.num_rows,
                num_bytes=metadata.num_bytes,
            )

        return await _observe_call(
            self.observability, name="get_table_schema", dataset=dataset_id, func=_run
        )


__all__ = ["QueryGateway", "ServiceCallMetrics", "ServiceObservability"]
