"""Serving configuration for the warehouse gateway HTTP surface."""

from __future__ import annotations

import json
import os

from pydantic import BaseModel, Field, SecretStr, model_validator

DEFAULT_PORT = 3000
DEFAULT_RATE_LIMIT_MAX = 100
DEFAULT_RATE_LIMIT_WINDOW_SEC = 15 * 60


def _parse_env_flag(value: str | None, *, default: bool) -> bool:
    """
    Interpret a string environment value as a boolean.

    Parameters
    ----------
    value:
        Raw environment variable value or None.
    default:
        Value to return when the environment variable is unset.

    Returns
    -------
    bool
        Parsed boolean flag.
    """
    if value is None:
        return default
    return value.lower() not in {"0", "false", "no", "off"}


def _parse_origins(value: str | None) -> list[str]:
    """
    Split a comma-separated origin list, falling back to a wildcard.

    Returns
    -------
    list[str]
        Normalized origins; ``["*"]`` when unset or blank.
    """
    if value is None:
        return ["*"]
    origins = [item.strip() for item in value.split(",") if item.strip()]
    return origins or ["*"]


def _optional_env(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return None
    return value


class GatewayConfig(BaseModel):
    """
    Runtime settings for the warehouse gateway.

    Centralizes environment loading and validation so the HTTP surface, the
    warehouse adapter and the CLI agree on project identity and limits.
    """

    project_id: str = Field(
        default="",
        description="Warehouse project identifier queried by the gateway.",
    )
    location: str | None = Field(
        default=None,
        description="Optional warehouse region used for jobs, e.g. 'europe-west3'.",
    )
    credentials_json: SecretStr | None = Field(
        default=None,
        description="Service account JSON; application default credentials when unset.",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Shared secret required on every warehouse-exposing route.",
    )
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="CORS origins allowed to call the API.",
    )
    docs_token: SecretStr | None = Field(
        default=None,
        description="Token protecting the OpenAPI description; unprotected when unset.",
    )
    host: str = Field(default="0.0.0.0", description="Listen host.")  # noqa: S104
    port: int = Field(default=DEFAULT_PORT, description="Listen port.")
    production_url: str | None = Field(
        default=None,
        description="Public base URL advertised in the OpenAPI server list.",
    )
    rate_limit_max: int = Field(
        default=DEFAULT_RATE_LIMIT_MAX,
        description="Requests allowed per client per window; 0 disables rate limiting.",
    )
    rate_limit_window_seconds: float = Field(
        default=DEFAULT_RATE_LIMIT_WINDOW_SEC,
        description="Length of the rate limiting window in seconds.",
    )
    job_timeout_seconds: float | None = Field(
        default=None,
        description="Maximum seconds to wait for a query job; waits indefinitely when unset.",
    )
    observability_enabled: bool = Field(
        default=False,
        description="Emit structured service_call log lines for gateway operations.",
    )

    @classmethod
    def from_env(cls) -> GatewayConfig:
        """
        Construct a GatewayConfig from environment variables.

        Returns
        -------
        GatewayConfig
            Validated configuration populated from environment values.
        """
        credentials_json = _optional_env("GCP_CREDENTIALS_JSON")
        api_key = _optional_env("API_KEY")
        docs_token = _optional_env("SWAGGER_TOKEN")
        job_timeout = _optional_env("WAREHOUSE_JOB_TIMEOUT_SEC")

        return cls(
            project_id=os.environ.get("GCP_PROJECT_ID", ""),
            location=_optional_env("GCP_LOCATION"),
            credentials_json=SecretStr(credentials_json) if credentials_json else None,
            api_key=SecretStr(api_key) if api_key else None,
            allowed_origins=_parse_origins(os.environ.get("ALLOWED_ORIGINS")),
            docs_token=SecretStr(docs_token) if docs_token else None,
            host=os.environ.get("HOST", "0.0.0.0"),  # noqa: S104
            port=int(os.environ.get("PORT", str(DEFAULT_PORT))),
            production_url=_optional_env("PRODUCTION_URL"),
            rate_limit_max=int(os.environ.get("RATE_LIMIT_MAX", str(DEFAULT_RATE_LIMIT_MAX))),
            rate_limit_window_seconds=float(
                os.environ.get("RATE_LIMIT_WINDOW_SEC", str(DEFAULT_RATE_LIMIT_WINDOW_SEC))
            ),
            job_timeout_seconds=float(job_timeout) if job_timeout else None,
            observability_enabled=_parse_env_flag(
                os.environ.get("GATEWAY_OBSERVABILITY"), default=False
            ),
        )

    @model_validator(mode="after")
    def _validate_limits(self) -> GatewayConfig:
        """
        Reject inconsistent numeric settings and malformed credentials.

        Returns
        -------
        GatewayConfig
            The validated configuration.

        Raises
        ------
        ValueError
            When a limit is out of range or the credentials JSON does not parse.
        """
        if not 0 < self.port < 65536:  # noqa: PLR2004
            message = f"port must be between 1 and 65535, got {self.port}"
            raise ValueError(message)
        if self.rate_limit_max < 0:
            message = "rate_limit_max must be non-negative"
            raise ValueError(message)
        if self.rate_limit_window_seconds <= 0:
            message = "rate_limit_window_seconds must be positive"
            raise ValueError(message)
        if self.job_timeout_seconds is not None and self.job_timeout_seconds <= 0:
            message = "job_timeout_seconds must be positive when set"
            raise ValueError(message)
        if self.credentials_json is not None:
            try:
                parsed = json.loads(self.credentials_json.get_secret_value())
            except json.JSONDecodeError as exc:
                message = "credentials_json is not valid JSON"
                raise ValueError(message) from exc
            if not isinstance(parsed, dict):
                message = "credentials_json must decode to a JSON object"
                raise ValueError(message)
        return self

    def credentials_info(self) -> dict[str, object] | None:
        """
        Return the decoded service account payload, if configured.

        Returns
        -------
        dict[str, object] | None
            Service account fields or ``None`` for application default credentials.
        """
        if self.credentials_json is None:
            return None
        return json.loads(self.credentials_json.get_secret_value())

    def redacted(self) -> dict[str, object]:
        """
        Return a JSON-friendly view with secrets masked.

        Returns
        -------
        dict[str, object]
            Configuration values safe to print or log.
        """
        payload = self.model_dump(mode="json")
        for key in ("credentials_json", "api_key", "docs_token"):
            payload[key] = "***" if getattr(self, key) is not None else None
        return payload


__all__ = ["GatewayConfig"]
