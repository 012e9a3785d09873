"""Warehouse client contract and the BigQuery adapter."""

from warehouse_gateway.warehouse.client import (
    DatasetInfo,
    QueryJobResult,
    TableInfo,
    TableMetadata,
    WarehouseClient,
)

__all__ = ["DatasetInfo", "QueryJobResult", "TableInfo", "TableMetadata", "WarehouseClient"]
