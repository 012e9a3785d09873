"""Serving surface exposing the warehouse over HTTP (FastAPI)."""

from warehouse_gateway.serving.services.gateway import QueryGateway
from warehouse_gateway.serving.services.wiring import GatewayResource, build_gateway_resource

__all__ = ["GatewayResource", "QueryGateway", "build_gateway_resource"]
