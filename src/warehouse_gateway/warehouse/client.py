"""Warehouse client contract consumed by the query gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class QueryJobResult:
    """Rows and statistics of a completed query job."""

    rows: list[dict[str, Any]]
    job_id: str
    total_bytes_processed: str | None = None


@dataclass(frozen=True)
class DatasetInfo:
    """Dataset identifier plus its storage location, when reported."""

    id: str
    location: str | None = None


@dataclass(frozen=True)
class TableInfo:
    """Table identifier plus its kind (``TABLE``, ``VIEW``, ...), when reported."""

    id: str
    type: str | None = None


@dataclass(frozen=True)
class TableMetadata:
    """Schema fields and size statistics of a table."""

    schema: list[dict[str, Any]] = field(default_factory=list)
    num_rows: int | None = None
    num_bytes: int | None = None


class WarehouseClient(Protocol):
    """Remote warehouse operations; every call suspends on network I/O."""

    async def run_query(self, sql: str, max_rows: int) -> QueryJobResult:
        """Submit ``sql`` as a job, wait for it and fetch up to ``max_rows`` rows."""
        ...

    async def list_datasets(self) -> list[DatasetInfo]:
        """List datasets of the configured project."""
        ...

    async def list_tables(self, dataset_id: str) -> list[TableInfo]:
        """List tables of one dataset."""
        ...

    async def get_table_schema(self, dataset_id: str, table_id: str) -> TableMetadata:
        """Fetch the schema and size statistics of one table."""
        ...


__all__ = ["DatasetInfo", "QueryJobResult", "TableInfo", "TableMetadata", "WarehouseClient"]
