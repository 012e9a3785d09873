"""Typed request/response models and the error envelope for the HTTP surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer
from pydantic.alias_generators import to_camel

MAX_SQL_LENGTH = 10_000
MAX_ROWS_LIMIT = 10_000
DEFAULT_MAX_ROWS = 1_000
MAX_IDENTIFIER_LENGTH = 1_024


class CamelModel(BaseModel):
    """Base model serializing snake_case fields under camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueryRequest(BaseModel):
    """Validated body of ``POST /query``; ``sql`` is forwarded verbatim."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        strict=True,
        extra="ignore",
        frozen=True,
    )

    sql: str = Field(
        min_length=1,
        max_length=MAX_SQL_LENGTH,
        description="SQL query to execute",
        examples=["SELECT * FROM `project.dataset.table` LIMIT 10"],
    )
    max_rows: int = Field(
        default=DEFAULT_MAX_ROWS,
        gt=0,
        le=MAX_ROWS_LIMIT,
        description="Maximum number of rows to return (default 1000, max 10000)",
    )


class QueryResponse(CamelModel):
    """Rows returned by a query job plus job statistics."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    total_rows: str | None = Field(
        default=None,
        description="Total bytes processed by the job, as reported by the warehouse.",
    )
    job_id: str


class CatalogEntry(CamelModel):
    """One table in the flattened project catalog."""

    id: str
    dataset_id: str
    location: str | None = None
    type: str | None = None


class CatalogResponse(CamelModel):
    """All tables across all datasets of the configured project."""

    project_id: str
    tables: list[CatalogEntry] = Field(default_factory=list)


class DatasetSummary(CamelModel):
    """Dataset identifier and its storage location."""

    id: str
    location: str | None = None


class DatasetsResponse(CamelModel):
    """Datasets of the configured project."""

    project_id: str
    datasets: list[DatasetSummary] = Field(default_factory=list)


class TableSummary(CamelModel):
    """Table identifier and kind within a dataset."""

    id: str
    type: str | None = None


class DatasetTablesResponse(CamelModel):
    """Tables belonging to a single dataset."""

    dataset_id: str
    tables: list[TableSummary] = Field(default_factory=list)


class SchemaField(BaseModel):
    """Column definition as reported by the warehouse; extra keys pass through."""

    model_config = ConfigDict(extra="allow")

    name: str
    type: str
    mode: str = "NULLABLE"


class TableSchemaResponse(CamelModel):
    """Column layout and size statistics of one table."""

    table_id: str
    dataset_id: str
    schema_: list[SchemaField] = Field(default_factory=list, alias="schema")
    num_rows: int | None = None
    num_bytes: int | None = None

    @model_serializer(mode="wrap")
    def _omit_absent_counts(self, handler: SerializerFunctionWrapHandler):  # noqa: ANN202
        # Unannotated return keeps the model's own schema in OpenAPI.
        data = handler(self)
        for key in ("numRows", "numBytes", "num_rows", "num_bytes"):
            if key in data and data[key] is None:
                del data[key]
        return data


class MessageResponse(BaseModel):
    """Plain message payload used by liveness routes."""

    message: str


class ErrorEnvelope(CamelModel):
    """Uniform error body returned for every failed request."""

    error: str
    message: str
    status_code: int


__all__ = [
    "DEFAULT_MAX_ROWS",
    "MAX_IDENTIFIER_LENGTH",
    "MAX_ROWS_LIMIT",
    "MAX_SQL_LENGTH",
    "CamelModel",
    "CatalogEntry",
    "CatalogResponse",
    "DatasetSummary",
    "DatasetTablesResponse",
    "DatasetsResponse",
    "ErrorEnvelope",
    "MessageResponse",
    "QueryRequest",
    "QueryResponse",
    "SchemaField",
    "TableSchemaResponse",
    "TableSummary",
]
