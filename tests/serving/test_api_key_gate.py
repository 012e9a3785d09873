"""Shared-secret credential extraction and checking."""

from __future__ import annotations

from http import HTTPStatus

import pytest
from starlette.datastructures import Headers

from warehouse_gateway.serving import errors
from warehouse_gateway.serving.auth import ApiKeyGate, extract_credential

SECRET = "s3cret"


@pytest.mark.parametrize(
    ("raw_headers", "expected"),
    [
        ({"Authorization": SECRET}, SECRET),
        ({"Authorization": f"Bearer {SECRET}"}, SECRET),
        ({"Authorization": f"bearer {SECRET}"}, SECRET),
        ({"X-API-Key": SECRET}, SECRET),
        ({"Authorization": SECRET, "X-API-Key": "other"}, SECRET),
        ({}, None),
    ],
)
def test_extract_credential(raw_headers: dict[str, str], expected: str | None) -> None:
    """Authorization wins over X-API-Key; a Bearer prefix is stripped."""
    credential = extract_credential(Headers(raw_headers))
    if credential != expected:
        pytest.fail(f"Expected {expected!r}, got {credential!r}")


@pytest.mark.parametrize(
    ("credential", "state"),
    [
        (SECRET, "authorized"),
        ("S3CRET", "rejected"),
        (f"{SECRET} ", "rejected"),
        ("", "rejected"),
        (None, "rejected"),
    ],
)
def test_gate_requires_exact_match(credential: str | None, state: str) -> None:
    """Only the exact configured secret is authorized."""
    if ApiKeyGate(SECRET).evaluate(credential) != state:
        pytest.fail(f"Expected {state} for {credential!r}")


def test_gate_without_secret_rejects_everyone() -> None:
    """An unset secret fails closed."""
    gate = ApiKeyGate(None)
    if gate.evaluate(SECRET) != "rejected" or gate.evaluate("") != "rejected":
        pytest.fail("Gate without a secret must reject every credential")


def test_check_raises_generic_auth_error() -> None:
    """Rejected requests raise a 401 with a generic message."""
    with pytest.raises(errors.AuthError) as excinfo:
        ApiKeyGate(SECRET).check(Headers({"Authorization": "nope"}))
    envelope = excinfo.value.envelope
    if envelope.status_code != HTTPStatus.UNAUTHORIZED:
        pytest.fail(f"Expected 401, got {envelope.status_code}")
    if envelope.message != errors.UNAUTHORIZED_MESSAGE:
        pytest.fail(f"Unexpected auth envelope: {envelope}")
    if "nope" in envelope.message:
        pytest.fail("Auth errors must not echo the presented credential")
