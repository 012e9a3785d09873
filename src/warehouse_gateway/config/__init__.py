"""Configuration models for the warehouse gateway.

- **Serving** (`serving_models.py`): environment-driven settings for the HTTP surface
  and the warehouse adapter.
"""

from warehouse_gateway.config.serving_models import GatewayConfig

__all__ = ["GatewayConfig"]
