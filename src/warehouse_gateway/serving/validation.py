"""Strict validation of inbound bodies and path parameters.

Everything past this module works with validated structures only; raw JSON
payloads never reach the gateway operations.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from warehouse_gateway.serving import errors
from warehouse_gateway.serving.models import MAX_IDENTIFIER_LENGTH, QueryRequest

_IDENTIFIER_FORBIDDEN = re.compile(r"[.`\x00-\x1f]")


def _format_location(loc: Sequence[Any]) -> str:
    parts = [str(part) for part in loc]
    return ".".join(parts) if parts else "body"


def format_violations(details: Iterable[Mapping[str, Any]]) -> list[str]:
    """
    Render pydantic/FastAPI error details as ``<field>: <message>`` strings.

    Parameters
    ----------
    details:
        Error dictionaries as produced by ``ValidationError.errors()``.

    Returns
    -------
    list[str]
        One human-readable entry per violated constraint, in report order.
    """
    return [
        f"{_format_location(item.get('loc', ()))}: {item.get('msg', 'invalid value')}"
        for item in details
    ]


def validate_query_request(raw: object) -> QueryRequest:
    """
    Validate an untyped ``POST /query`` body.

    ``sql`` must be a non-empty string of at most 10000 characters and
    ``maxRows``, when present, an integer in ``[1, 10000]`` (default 1000).
    No type coercion is applied.

    Parameters
    ----------
    raw:
        Decoded JSON body.

    Returns
    -------
    QueryRequest
        Validated request.

    Raises
    ------
    errors.ValidationError
        Listing every violated constraint.
    """
    if not isinstance(raw, Mapping):
        raise errors.validation_failed(["body: Expected a JSON object"])
    try:
        return QueryRequest.model_validate(raw)
    except PydanticValidationError as exc:
        raise errors.validation_failed(format_violations(exc.errors())) from exc


def _identifier_violations(field: str, value: str) -> list[str]:
    if not value:
        return [f"{field}: must not be empty"]
    violations: list[str] = []
    if len(value) > MAX_IDENTIFIER_LENGTH:
        violations.append(f"{field}: must be at most {MAX_IDENTIFIER_LENGTH} characters")
    if _IDENTIFIER_FORBIDDEN.search(value):
        violations.append(f"{field}: must not contain '.', '`' or control characters")
    return violations


def validate_dataset_id(dataset_id: str) -> str:
    """
    Validate a dataset identifier taken from the request path.

    Returns
    -------
    str
        The unchanged identifier.

    Raises
    ------
    errors.ValidationError
        When the identifier is empty, too long or contains forbidden characters.
    """
    violations = _identifier_violations("datasetId", dataset_id)
    if violations:
        raise errors.validation_failed(violations)
    return dataset_id


def validate_table_ref(dataset_id: str, table_id: str) -> tuple[str, str]:
    """
    Validate a dataset/table pair taken from the request path.

    Returns
    -------
    tuple[str, str]
        The unchanged dataset and table identifiers.

    Raises
    ------
    errors.ValidationError
        Listing the violations of both identifiers.
    """
    violations = _identifier_violations("datasetId", dataset_id) + _identifier_violations(
        "tableId", table_id
    )
    if violations:
        raise errors.validation_failed(violations)
    return dataset_id, table_id


__all__ = [
    "format_violations",
    "validate_dataset_id",
    "validate_query_request",
    "validate_table_ref",
]
