"""Gateway application services shared by the HTTP surface and the CLI."""

from __future__ import annotations

from warehouse_gateway.serving.services.gateway import QueryGateway, ServiceObservability
from warehouse_gateway.serving.services.wiring import GatewayResource, build_gateway_resource

__all__ = ["GatewayResource", "QueryGateway", "ServiceObservability", "build_gateway_resource"]
