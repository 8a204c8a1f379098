# saffeh/services/errors.py
"""
Error taxonomy shared by the gateway and every service built on it.
Every failure a caller can see is an ApiError with a message, an HTTP
status (0 when no response was received) and a symbolic code.
"""

from typing import Optional


class ApiError(Exception):
    code = "HTTP_ERROR"

    def __init__(self, message: str, status: int = 0, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        if code:
            self.code = code

    def __repr__(self):
        return f"<{type(self).__name__} status={self.status} code={self.code} message={self.message!r}>"


class ValidationError(ApiError):
    """Missing or invalid input, raised before any network call."""
    code = "VALIDATION_ERROR"


class AuthError(ApiError):
    """401 from any endpoint. Local credentials must be cleared."""
    code = "UNAUTHORIZED"


class PermissionDeniedError(ApiError):
    code = "FORBIDDEN"


class NetworkError(ApiError):
    code = "NETWORK_ERROR"


class MalformedResponseError(ApiError):
    code = "MALFORMED_RESPONSE"


class NotReadyError(ApiError):
    """400 from confirm-payment: the payment has not been recorded yet."""
    code = "NOT_READY"


class TransientServerError(ApiError):
    """Failure during a polling loop; logged and retried on the next tick."""
    code = "TRANSIENT"


class TerminalApiError(ApiError):
    """Failure of a one-shot action, surfaced to the user as-is."""
    code = "ACTION_FAILED"


class InvalidTransitionError(ApiError):
    """Illegal reservation status change. Never reaches the network."""
    code = "INVALID_TRANSITION"


def http_error_for(status: int, message: str) -> ApiError:
    """Map a non-2xx status to the matching error class."""
    if status == 401:
        return AuthError(message, status)
    if status == 403:
        return PermissionDeniedError(message, status)
    return ApiError(message, status)


def as_terminal(exc: ApiError, fallback: str) -> ApiError:
    """Re-type a generic HTTP failure from a one-shot action; auth errors pass through."""
    if isinstance(exc, (AuthError, PermissionDeniedError, ValidationError, InvalidTransitionError)):
        return exc
    return TerminalApiError(exc.message or fallback, exc.status)
