"""Error taxonomy shared by the endpoints and the conversation API.

Every error carries a stable machine code, a human message (in Spanish, the
portal's language) and the HTTP status used when it ends a request.
"""


class ChatServiceError(Exception):
    """Base class for errors rendered as ``{"error": code, "message": ...}``."""

    status_code: int = 500
    code: str = "UNEXPECTED_ERROR"

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class AuthError(ChatServiceError):
    """Missing, invalid or expired session token."""

    status_code = 401
    code = "AUTH_ERROR"


class ForbiddenError(ChatServiceError):
    """Token identity does not match the user the request acts for."""

    status_code = 403
    code = "FORBIDDEN"


class BadRequestError(ChatServiceError):
    status_code = 400
    code = "BAD_REQUEST"


class NotFoundError(ChatServiceError):
    status_code = 404
    code = "NOT_FOUND"


class MethodNotAllowedError(ChatServiceError):
    status_code = 405
    code = "METHOD_NOT_ALLOWED"


class LimitReachedError(ChatServiceError):
    """Conversation limit hit while the reject policy is active."""

    status_code = 409
    code = "LIMIT_REACHED"


class ConfigError(ChatServiceError):
    """A server-side credential is missing.

    Uses ``SERVER_CONFIG_ERROR`` for the identity service and
    ``API_KEY_MISSING`` for provider keys so clients can tell them apart from
    upstream failures.
    """

    status_code = 500
    code = "SERVER_CONFIG_ERROR"


class UpstreamError(ChatServiceError):
    """An AI provider answered with a failure or could not be reached."""

    status_code = 502
    code = "EXTERNAL_API_ERROR"

    def __init__(self, message: str, upstream_status: int | None = None, code: str | None = None):
        super().__init__(message, code=code)
        self.upstream_status = upstream_status


class RateLimitError(UpstreamError):
    code = "RATE_LIMITED"


class NetworkError(UpstreamError):
    """No response at all from the provider."""

    code = "NETWORK_ERROR"


class UnexpectedError(ChatServiceError):
    status_code = 500
    code = "UNEXPECTED_ERROR"


def upstream_error(provider: str, status: int, detail: str) -> UpstreamError:
    """Build the error raised when a provider answers with a failure status."""
    message = f"La API de '{provider}' falló ({status}): {detail}"
    if status == 429:
        return RateLimitError(message, upstream_status=status)
    return UpstreamError(message, upstream_status=status)
