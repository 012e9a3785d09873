"""Environment-driven gateway configuration."""

from __future__ import annotations

import json

import pytest
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from warehouse_gateway.config.serving_models import GatewayConfig
from warehouse_gateway.serving.http.fastapi import load_api_config

ENV_VARS = (
    "GCP_PROJECT_ID",
    "GCP_LOCATION",
    "GCP_CREDENTIALS_JSON",
    "API_KEY",
    "ALLOWED_ORIGINS",
    "SWAGGER_TOKEN",
    "HOST",
    "PORT",
    "PRODUCTION_URL",
    "RATE_LIMIT_MAX",
    "RATE_LIMIT_WINDOW_SEC",
    "WAREHOUSE_JOB_TIMEOUT_SEC",
    "GATEWAY_OBSERVABILITY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_from_empty_environment() -> None:
    """Unset variables fall back to documented defaults."""
    cfg = GatewayConfig.from_env()
    if cfg.allowed_origins != ["*"] or cfg.host != "0.0.0.0":  # noqa: S104
        pytest.fail(f"Unexpected defaults: {cfg!r}")
    if cfg.port != 3000:  # noqa: PLR2004
        pytest.fail(f"Unexpected defaults: {cfg!r}")
    if cfg.rate_limit_max != 100 or cfg.rate_limit_window_seconds != 900:  # noqa: PLR2004
        pytest.fail("Unexpected rate limit defaults")
    if cfg.api_key is not None or cfg.job_timeout_seconds is not None:
        pytest.fail("Optional settings must default to None")
    if cfg.observability_enabled:
        pytest.fail("Observability must be off by default")


def test_values_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every supported variable is parsed into the config."""
    monkeypatch.setenv("GCP_PROJECT_ID", "acme-analytics")
    monkeypatch.setenv("GCP_LOCATION", "europe-west3")
    monkeypatch.setenv("GCP_CREDENTIALS_JSON", json.dumps({"type": "service_account"}))
    monkeypatch.setenv("API_KEY", "k")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example.com, https://b.example.com,")
    monkeypatch.setenv("SWAGGER_TOKEN", "docs")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RATE_LIMIT_MAX", "0")
    monkeypatch.setenv("WAREHOUSE_JOB_TIMEOUT_SEC", "30")
    monkeypatch.setenv("GATEWAY_OBSERVABILITY", "yes")
    cfg = GatewayConfig.from_env()
    if cfg.project_id != "acme-analytics" or cfg.location != "europe-west3":
        pytest.fail(f"Unexpected project settings: {cfg!r}")
    if cfg.allowed_origins != ["https://a.example.com", "https://b.example.com"]:
        pytest.fail(f"Unexpected origins: {cfg.allowed_origins}")
    if cfg.credentials_info() != {"type": "service_account"}:
        pytest.fail("Credentials JSON was not decoded")
    if cfg.port != 8080 or cfg.job_timeout_seconds != 30.0:  # noqa: PLR2004
        pytest.fail(f"Unexpected numeric settings: {cfg!r}")
    if cfg.rate_limit_max != 0:
        pytest.fail(f"Unexpected numeric settings: {cfg!r}")
    if not cfg.observability_enabled:
        pytest.fail("Expected observability to be enabled")


@pytest.mark.parametrize(
    "overrides",
    [
        {"port": 0},
        {"port": 70_000},
        {"rate_limit_max": -1},
        {"rate_limit_window_seconds": 0},
        {"job_timeout_seconds": 0},
        {"credentials_json": SecretStr("{not json")},
        {"credentials_json": SecretStr("[1, 2]")},
    ],
)
def test_invalid_settings_rejected(overrides: dict[str, object]) -> None:
    """Out-of-range limits and malformed credentials are configuration errors."""
    with pytest.raises(PydanticValidationError):
        GatewayConfig(project_id="p", **overrides)  # type: ignore[arg-type]


def test_redacted_masks_secrets() -> None:
    """Secrets never appear in the redacted view."""
    cfg = GatewayConfig(
        project_id="p",
        api_key=SecretStr("api-secret"),
        docs_token=SecretStr("docs-secret"),
        credentials_json=SecretStr(json.dumps({"private_key": "pk"})),
    )
    redacted = cfg.redacted()
    dumped = json.dumps(redacted)
    for secret in ("api-secret", "docs-secret", "pk"):
        if secret in dumped:
            pytest.fail(f"Secret {secret!r} leaked into redacted config")
    if redacted["api_key"] != "***" or redacted["project_id"] != "p":
        pytest.fail(f"Unexpected redacted view: {redacted}")


def test_load_api_config_requires_project(monkeypatch: pytest.MonkeyPatch) -> None:
    """The server refuses to start without a project id."""
    monkeypatch.setenv("API_KEY", "k")
    with pytest.raises(ValueError, match="GCP_PROJECT_ID"):
        load_api_config()


def test_load_api_config_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """The server refuses to start without an API key."""
    monkeypatch.setenv("GCP_PROJECT_ID", "p")
    with pytest.raises(ValueError, match="API_KEY"):
        load_api_config()


def test_load_api_config_success(monkeypatch: pytest.MonkeyPatch) -> None:
    """A complete environment loads."""
    monkeypatch.setenv("GCP_PROJECT_ID", "p")
    monkeypatch.setenv("API_KEY", "k")
    cfg = load_api_config()
    if cfg.api_key is None or cfg.api_key.get_secret_value() != "k":
        pytest.fail("Expected the API key to be loaded")
