"""FastAPI server exposing warehouse queries and catalog discovery."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, Path, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from warehouse_gateway.config.serving_models import GatewayConfig
from warehouse_gateway.serving import errors
from warehouse_gateway.serving.auth import ApiKeyGate, require_api_key
from warehouse_gateway.serving.http.middleware import (
    RateLimiter,
    install_docs_guard,
    install_rate_limit_middleware,
    install_security_headers,
)
from warehouse_gateway.serving.http.responses import error_response
from warehouse_gateway.serving.models import (
    CatalogResponse,
    DatasetsResponse,
    DatasetTablesResponse,
    ErrorEnvelope,
    MessageResponse,
    QueryRequest,
    QueryResponse,
    TableSchemaResponse,
)
from warehouse_gateway.serving.services.gateway import QueryGateway
from warehouse_gateway.serving.services.wiring import GatewayResource, build_gateway_resource
from warehouse_gateway.serving.validation import (
    format_violations,
    validate_dataset_id,
    validate_query_request,
    validate_table_ref,
)

LOG = logging.getLogger("warehouse_gateway.serving.http.fastapi")

API_TITLE = "Big Query API"
API_VERSION = "1.0.0"
DOCS_URL = "/api-docs"
OPENAPI_URL = "/api-docs.json"
SECURITY_SCHEME = "ApiKeyAuth"


def load_api_config() -> GatewayConfig:
    """
    Load and validate server configuration from environment variables.

    Raises
    ------
    ValueError
        If the project id or the API key is missing.

    Returns
    -------
    GatewayConfig
        Validated configuration for the FastAPI surface.
    """
    config = GatewayConfig.from_env()
    if not config.project_id:
        message = "GCP_PROJECT_ID must be set for the API server"
        raise ValueError(message)
    if config.api_key is None:
        message = "API_KEY must be set for the API server"
        raise ValueError(message)
    return config


def create_gateway_resource(cfg: GatewayConfig) -> GatewayResource:
    """
    Instantiate the warehouse-backed gateway for the API.

    Parameters
    ----------
    cfg:
        Application configuration with project identity and credentials.

    Returns
    -------
    GatewayResource
        Gateway instance plus shutdown hook.

    Raises
    ------
    errors.InternalError
        If the warehouse client cannot be constructed.
    """
    try:
        return build_gateway_resource(cfg)
    except Exception as exc:
        raise errors.internal_failure(str(exc)) from exc


def _route_label(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _log_gateway_error(request: Request, exc: errors.GatewayError) -> None:
    level = logging.WARNING
    if exc.envelope.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        level = logging.ERROR
    LOG.log(level, "%s %s failed: %s", request.method, request.url.path, exc)


def install_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers producing the error envelope."""

    @app.exception_handler(errors.GatewayError)
    def _handle_gateway_error(
        request: Request,
        exc: errors.GatewayError,
    ) -> JSONResponse:
        _log_gateway_error(request, exc)
        return error_response(exc.envelope)

    @app.exception_handler(RequestValidationError)
    def _handle_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        error = errors.validation_failed(format_violations(exc.errors()))
        _log_gateway_error(request, error)
        return error_response(error.envelope)

    @app.exception_handler(StarletteHTTPException)
    def _handle_http_exception(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        if exc.status_code in {status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED}:
            not_found = errors.route_not_found(request.method, _route_label(request))
            _log_gateway_error(request, not_found)
            return error_response(not_found.envelope)
        envelope = ErrorEnvelope(
            error=HTTPStatus(exc.status_code).phrase,
            message=str(exc.detail),
            status_code=exc.status_code,
        )
        LOG.warning("%s %s failed: %s", request.method, request.url.path, envelope.message)
        return error_response(envelope, headers=exc.headers)

    @app.exception_handler(Exception)
    def _handle_unexpected(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        LOG.exception("Unhandled error for %s %s", request.method, request.url.path)
        return error_response(errors.internal_failure(str(exc)).envelope)


def install_internal_error_middleware(app: FastAPI) -> None:
    """
    Convert unhandled route failures into the InternalError envelope.

    Must be installed before every other HTTP middleware so it is the
    innermost layer; outer layers then see an ordinary 500 response.
    """

    @app.middleware("http")
    async def _internal_errors(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            LOG.exception("Unhandled error for %s %s", request.method, request.url.path)
            return error_response(errors.internal_failure(str(exc)).envelope)


def install_logging_middleware(app: FastAPI) -> None:
    """Add structured logging for each request."""

    @app.middleware("http")
    async def _log_request(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        config: GatewayConfig | None = getattr(request.app.state, "config", None)
        project = config.project_id if config is not None else "unknown"
        LOG.info(
            "Handled %s %s status=%s project=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            project,
            duration_ms,
        )
        return response


def install_cors(app: FastAPI, cfg: GatewayConfig) -> None:
    """Allow browser clients from the configured origins."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key"],
    )


def _openapi_servers(cfg: GatewayConfig) -> list[dict[str, str]]:
    servers = [{"url": f"http://localhost:{cfg.port}", "description": "Local server"}]
    if cfg.production_url:
        servers.append({"url": cfg.production_url, "description": "Production server"})
    return servers


def install_openapi(app: FastAPI, cfg: GatewayConfig) -> None:
    """
    Publish the OpenAPI description with server entries and API key security.

    Every ``/query`` operation is marked as requiring the ``ApiKeyAuth`` scheme.
    """

    def _openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
            servers=_openapi_servers(cfg),
        )
        components = schema.setdefault("components", {})
        components.setdefault("securitySchemes", {})[SECURITY_SCHEME] = {
            "type": "apiKey",
            "in": "header",
            "name": "Authorization",
        }
        for path, operations in schema.get("paths", {}).items():
            if not path.startswith("/query"):
                continue
            for operation in operations.values():
                operation["security"] = [{SECURITY_SCHEME: []}]
        app.openapi_schema = schema
        return schema

    app.openapi = _openapi  # type: ignore[method-assign]


def get_gateway(request: Request) -> QueryGateway:
    """
    Retrieve the shared query gateway from state.

    Returns
    -------
    QueryGateway
        Gateway bound to the configured warehouse.

    Raises
    ------
    errors.InternalError
        If the gateway is missing.
    """
    gateway: QueryGateway | None = getattr(request.app.state, "gateway", None)
    if gateway is None:
        message = "Query gateway is not initialized"
        raise errors.internal_failure(message)
    return gateway


GatewayDep = Annotated[QueryGateway, Depends(get_gateway)]
DatasetIdParam = Annotated[str, Path(alias="datasetId", description="Dataset identifier")]
TableIdParam = Annotated[str, Path(alias="tableId", description="Table identifier")]


def build_health_router() -> APIRouter:
    """
    Construct the router for unauthenticated liveness endpoints.

    Returns
    -------
    APIRouter
        Router exposing ``/`` and ``/health``.
    """
    router = APIRouter(tags=["health"])

    @router.get("/", response_model=MessageResponse, summary="Root liveness probe")
    def root() -> MessageResponse:
        return MessageResponse(message="Hello World!")

    @router.get("/health", response_model=MessageResponse, summary="Health check")
    def health() -> MessageResponse:
        return MessageResponse(message="The API is healthy!")

    return router


def build_query_router() -> APIRouter:
    """
    Construct the router for query execution and catalog discovery.

    Every route requires the shared secret; the check runs before the body
    is read or the warehouse is contacted.

    Returns
    -------
    APIRouter
        Router mounted under ``/query``.
    """
    router = APIRouter(
        prefix="/query",
        tags=["query"],
        dependencies=[Depends(require_api_key)],
    )

    @router.post(
        "",
        response_model=QueryResponse,
        summary="Execute a SQL query",
        openapi_extra={
            "requestBody": {
                "required": True,
                "content": {
                    "application/json": {
                        "schema": QueryRequest.model_json_schema(by_alias=True),
                    }
                },
            }
        },
    )
    async def execute_query(request: Request, gateway: GatewayDep) -> QueryResponse:
        """
        Run the submitted SQL and return at most ``maxRows`` rows.

        Returns
        -------
        QueryResponse
            Rows, bytes processed and job id.

        Raises
        ------
        errors.ValidationError
            When the body is not valid JSON or violates the request schema.
        """
        try:
            raw = await request.json()
        except ValueError as exc:
            raise errors.validation_failed(["body: Expected a valid JSON body"]) from exc
        return await gateway.execute_query(validate_query_request(raw))

    @router.get(
        "/catalog-datasets",
        response_model=CatalogResponse,
        response_model_exclude_none=True,
        summary="List all tables across all datasets",
    )
    async def list_catalog(gateway: GatewayDep) -> CatalogResponse:
        return await gateway.list_catalog()

    @router.get(
        "/datasets",
        response_model=DatasetsResponse,
        response_model_exclude_none=True,
        summary="List datasets",
    )
    async def list_datasets(gateway: GatewayDep) -> DatasetsResponse:
        return await gateway.list_datasets()

    @router.get(
        "/datasets/{datasetId}/tables",
        response_model=DatasetTablesResponse,
        response_model_exclude_none=True,
        summary="List tables in a dataset",
    )
    async def list_tables(dataset_id: DatasetIdParam, gateway: GatewayDep) -> DatasetTablesResponse:
        return await gateway.list_tables(validate_dataset_id(dataset_id))

    @router.get(
        "/tables/{datasetId}/{tableId}/schema",
        response_model=TableSchemaResponse,
        summary="Get a table schema",
    )
    async def get_table_schema(
        dataset_id: DatasetIdParam,
        table_id: TableIdParam,
        gateway: GatewayDep,
    ) -> TableSchemaResponse:
        return await gateway.get_table_schema(*validate_table_ref(dataset_id, table_id))

    return router


def register_routes(app: FastAPI) -> None:
    """Attach all routers to the FastAPI application."""
    app.include_router(build_health_router())
    app.include_router(build_query_router())


def create_app(
    *,
    config_loader: Callable[[], GatewayConfig] = load_api_config,
    warehouse_factory: Callable[[GatewayConfig], GatewayResource] = create_gateway_resource,
) -> FastAPI:
    """
    Build the FastAPI application with configured lifecycle and routes.

    Configuration is loaded immediately since CORS, rate limiting and the
    docs guard are installed from it; the warehouse resource is created on
    startup and closed on shutdown.

    Parameters
    ----------
    config_loader:
        Factory for loading application configuration.
    warehouse_factory:
        Factory that yields a gateway resource for the given configuration.

    Returns
    -------
    FastAPI
        Configured FastAPI instance.
    """
    config = config_loader()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resource = warehouse_factory(config)
        app.state.gateway = resource.gateway
        try:
            yield
        finally:
            resource.close()
            app.state.gateway = None

    app = FastAPI(
        title=API_TITLE,
        description="API for querying the configured BigQuery project.",
        version=API_VERSION,
        docs_url=DOCS_URL,
        redoc_url=None,
        openapi_url=OPENAPI_URL,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.api_key_gate = ApiKeyGate(
        config.api_key.get_secret_value() if config.api_key is not None else None
    )
    app.state.rate_limiter = RateLimiter(
        max_requests=config.rate_limit_max,
        window_seconds=config.rate_limit_window_seconds,
    )

    install_exception_handlers(app)
    install_internal_error_middleware(app)
    install_docs_guard(
        app,
        docs_path=OPENAPI_URL,
        token=config.docs_token.get_secret_value() if config.docs_token is not None else None,
    )
    install_rate_limit_middleware(app, app.state.rate_limiter)
    install_cors(app, config)
    install_security_headers(app)
    install_logging_middleware(app)
    install_openapi(app, config)
    register_routes(app)
    return app
