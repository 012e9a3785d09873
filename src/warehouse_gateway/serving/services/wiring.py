"""Startup wiring for the shared warehouse handle and gateway service."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from warehouse_gateway.config.serving_models import GatewayConfig
from warehouse_gateway.serving.services.gateway import QueryGateway, ServiceObservability
from warehouse_gateway.warehouse.client import WarehouseClient

LOG = logging.getLogger("warehouse_gateway.serving.services.wiring")

__all__ = ["GatewayResource", "build_gateway_resource", "get_observability_from_config"]


@dataclass
class GatewayResource:
    """Bundle of gateway service and cleanup hook."""

    gateway: QueryGateway
    close: Callable[[], None]


def get_observability_from_config(cfg: GatewayConfig) -> ServiceObservability | None:
    """
    Derive service observability settings from configuration flags.

    Parameters
    ----------
    cfg:
        Gateway configuration that may enable observability.

    Returns
    -------
    ServiceObservability | None
        Enabled observability config when toggled on; otherwise ``None``.
    """
    if not cfg.observability_enabled:
        return None
    return ServiceObservability(enabled=True)


def build_gateway_resource(
    cfg: GatewayConfig,
    *,
    warehouse: WarehouseClient | None = None,
) -> GatewayResource:
    """
    Construct the query gateway and its shutdown hook.

    A BigQuery client is created from configuration unless a warehouse
    implementation is supplied.

    Parameters
    ----------
    cfg:
        Validated gateway configuration.
    warehouse:
        Optional pre-built warehouse client; the caller keeps ownership.

    Returns
    -------
    GatewayResource
        Gateway plus close hook suitable for application startup.
    """
    observability = get_observability_from_config(cfg)
    if warehouse is not None:
        gateway = QueryGateway(
            warehouse=warehouse, project_id=cfg.project_id, observability=observability
        )
        return GatewayResource(gateway=gateway, close=lambda: None)

    from warehouse_gateway.warehouse.bigquery_client import (  # noqa: PLC0415
        BigQueryWarehouse,
        build_bigquery_client,
    )

    bigquery_warehouse = BigQueryWarehouse(
        client=build_bigquery_client(cfg),
        job_timeout_seconds=cfg.job_timeout_seconds,
    )
    LOG.info(
        "gateway.warehouse wired project=%s location=%s explicit_credentials=%s",
        cfg.project_id,
        cfg.location or "default",
        cfg.credentials_json is not None,
    )
    gateway = QueryGateway(
        warehouse=bigquery_warehouse,
        project_id=cfg.project_id,
        observability=observability,
    )
    return GatewayResource(gateway=gateway, close=bigquery_warehouse.close)
