from __future__ import annotations


class RelayError(Exception):
    """
    Base for every failure the relay reports to its caller.
    Subclasses pin the HTTP status and the caller-facing message.
    """

    status_code: int = 500
    message: str = "Failed to get response from Claude"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidRequest(RelayError):
    status_code = 400
    message = "Invalid request format"


class ConfigurationError(RelayError):
    status_code = 500
    message = "Claude API key not configured"


class AuthError(RelayError):
    status_code = 401
    message = "Invalid API key"


class RateLimited(RelayError):
    status_code = 429
    message = "Rate limit exceeded. Please try again later."


class UpstreamRejected(RelayError):
    status_code = 400
    message = "Invalid request to Claude API"


class UnknownFailure(RelayError):
    status_code = 500
    message = "Failed to get response from Claude"


class ClientDisconnected(RelayError):
    # nginx's "client closed request"; the caller is gone and never reads it
    status_code = 499
    message = "Client disconnected"


_BY_STATUS: dict[int, type[RelayError]] = {
    401: AuthError,
    429: RateLimited,
    400: UpstreamRejected,
}


def classify_upstream_error(exc: BaseException) -> RelayError:
    """
    Map an exception raised by the upstream client (or anything else that
    went wrong while talking to it) onto the caller-facing taxonomy.
    """
    if isinstance(exc, RelayError):
        return exc

    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)

    error_cls = _BY_STATUS.get(status) if isinstance(status, int) else None
    if error_cls is None:
        return UnknownFailure()
    return error_cls()
