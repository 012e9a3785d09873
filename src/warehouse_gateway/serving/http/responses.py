"""JSON response helpers for the uniform error envelope."""

from __future__ import annotations

from collections.abc import Mapping

from fastapi.responses import JSONResponse

from warehouse_gateway.serving.models import ErrorEnvelope


def error_response(
    envelope: ErrorEnvelope,
    *,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """
    Convert an ErrorEnvelope into a JSON HTTP response.

    Parameters
    ----------
    envelope:
        Envelope instance to serialize.
    headers:
        Optional extra response headers.

    Returns
    -------
    JSONResponse
        Response whose status code matches ``envelope.status_code``.
    """
    return JSONResponse(
        status_code=envelope.status_code,
        content=envelope.model_dump(by_alias=True),
        headers=dict(headers) if headers else None,
    )


__all__ = ["error_response"]
