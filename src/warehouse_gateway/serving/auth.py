"""Shared-secret authorization for warehouse-exposing routes."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Literal

from fastapi import Request
from starlette.datastructures import Headers

from warehouse_gateway.serving import errors

AuthState = Literal["authorized", "rejected"]

_BEARER_PREFIX = "bearer "


def extract_credential(headers: Headers) -> str | None:
    """
    Pull the caller credential from request headers.

    The ``Authorization`` header may carry the key as-is or as
    ``Bearer <key>``; ``X-API-Key`` is accepted as an alternate channel.

    Parameters
    ----------
    headers:
        Incoming request headers.

    Returns
    -------
    str | None
        Credential string, or ``None`` when no header carries one.
    """
    authorization = headers.get("authorization")
    if authorization:
        if authorization[: len(_BEARER_PREFIX)].lower() == _BEARER_PREFIX:
            return authorization[len(_BEARER_PREFIX) :].strip()
        return authorization
    return headers.get("x-api-key") or None


@dataclass(frozen=True)
class ApiKeyGate:
    """Stateless check of a caller credential against the configured secret."""

    api_key: str | None

    def evaluate(self, credential: str | None) -> AuthState:
        """
        Decide whether a credential grants access.

        An unset secret rejects every caller.

        Returns
        -------
        AuthState
            ``"authorized"`` on exact match, ``"rejected"`` otherwise.
        """
        if not self.api_key or credential is None:
            return "rejected"
        matched = hmac.compare_digest(credential.encode("utf-8"), self.api_key.encode("utf-8"))
        return "authorized" if matched else "rejected"

    def check(self, headers: Headers) -> None:
        """
        Authorize a request or raise.

        Raises
        ------
        errors.AuthError
            When the credential is missing or does not match.
        """
        if self.evaluate(extract_credential(headers)) == "rejected":
            raise errors.unauthorized()


def get_api_key_gate(request: Request) -> ApiKeyGate:
    """
    Retrieve the gate installed on application state.

    Returns
    -------
    ApiKeyGate
        Gate bound to the configured secret.

    Raises
    ------
    errors.InternalError
        If the application was started without a gate.
    """
    gate: ApiKeyGate | None = getattr(request.app.state, "api_key_gate", None)
    if gate is None:
        message = "API key gate is not initialized"
        raise errors.internal_failure(message)
    return gate


def require_api_key(request: Request) -> None:
    """
    FastAPI dependency enforcing the shared secret before any warehouse call.

    Raises
    ------
    errors.AuthError
        When the request does not carry the configured credential.
    """
    get_api_key_gate(request).check(request.headers)


__all__ = ["ApiKeyGate", "AuthState", "extract_credential", "get_api_key_gate", "require_api_key"]
