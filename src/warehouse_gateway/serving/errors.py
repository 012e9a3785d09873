"""Gateway error taxonomy and helpers for the uniform error envelope."""

from __future__ import annotations

from collections.abc import Sequence

from warehouse_gateway.serving.models import ErrorEnvelope

UNAUTHORIZED_MESSAGE = "Unauthorized user or API key is incorrect"


class GatewayError(Exception):
    """Base gateway error carrying an ErrorEnvelope payload."""

    status_code: int = 500

    def __init__(self, message: str, *, error: str | None = None) -> None:
        super().__init__(message)
        self.envelope = ErrorEnvelope(
            error=error or type(self).__name__,
            message=message,
            status_code=self.status_code,
        )

    @property
    def message(self) -> str:
        """Client-facing message text."""
        return self.envelope.message

    def __str__(self) -> str:
        """
        Return a concise string for logging/diagnostics.

        Returns
        -------
        str
            Concise representation of the problem.
        """
        return f"{self.envelope.error}: {self.envelope.message}"


class ValidationError(GatewayError):
    """Client-caused input error listing every violated constraint."""

    status_code = 400

    def __init__(self, violations: Sequence[str]) -> None:
        self.violations = list(violations)
        detail = "; ".join(self.violations) or "Invalid request"
        super().__init__(f"Request validation failed: {detail}")


class AuthError(GatewayError):
    """Missing or incorrect shared-secret credential."""

    status_code = 401


class NotFoundError(GatewayError):
    """No route matches the requested method and path."""

    status_code = 404


class RateLimitError(GatewayError):
    """Caller exceeded the request budget for the current window."""

    status_code = 429

    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message, error="Too Many Requests")
        self.retry_after = retry_after


class UpstreamError(GatewayError):
    """Failure reported by the warehouse; the message is forwarded as-is."""

    status_code = 500


class InternalError(GatewayError):
    """Any other unhandled failure inside the gateway."""

    status_code = 500


def validation_failed(violations: Sequence[str]) -> ValidationError:
    """
    Construct a validation error from a list of violations.

    Returns
    -------
    ValidationError
        Error whose message enumerates every violation.
    """
    return ValidationError(violations)


def unauthorized(message: str = UNAUTHORIZED_MESSAGE, *, error: str | None = None) -> AuthError:
    """
    Construct an authorization failure with a generic message.

    Returns
    -------
    AuthError
        Error mapped to HTTP 401.
    """
    return AuthError(message, error=error)


def route_not_found(method: str, path: str) -> NotFoundError:
    """
    Construct the not-found error for an unmatched route.

    Returns
    -------
    NotFoundError
        Error mapped to HTTP 404.
    """
    return NotFoundError(f"Route {method}:{path} not found", error="Not Found")


def upstream_failure(message: str) -> UpstreamError:
    """
    Construct an upstream failure forwarding the warehouse message.

    Returns
    -------
    UpstreamError
        Error mapped to HTTP 500.
    """
    return UpstreamError(message or "Warehouse request failed")


def internal_failure(message: str) -> InternalError:
    """
    Construct an internal failure for unexpected exceptions.

    Returns
    -------
    InternalError
        Error mapped to HTTP 500.
    """
    return InternalError(message or "Internal server error")


__all__ = [
    "UNAUTHORIZED_MESSAGE",
    "AuthError",
    "GatewayError",
    "InternalError",
    "NotFoundError",
    "RateLimitError",
    "UpstreamError",
    "ValidationError",
    "internal_failure",
    "route_not_found",
    "unauthorized",
    "upstream_failure",
    "validation_failed",
]
