"""Exceptions raised while handling a scan request.

Each exception carries the HTTP status and the fixed message shown to the
caller. Anything more specific (upstream bodies, stack traces) is logged
server-side and never leaves the process.
"""


class ScanGatewayError(Exception):
    """Base class for failures that map to an HTTP error response."""

    status_code = 500
    public_message = "Internal server error during scan."

    def __init__(self, detail: str | None = None, public_message: str | None = None):
        super().__init__(detail or self.public_message)
        if public_message is not None:
            self.public_message = public_message


class ValidationError(ScanGatewayError):
    """The request body failed validation. The message is safe to return."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, public_message=message)


class RateLimitExceeded(ScanGatewayError):
    status_code = 429
    public_message = "Rate limit reached. You can perform 10 scans per 15 minutes."


class ConfigurationError(ScanGatewayError):
    """Server is missing configuration, e.g. the provider API key."""

    status_code = 500
    public_message = "Server configuration error."


class UpstreamError(ScanGatewayError):
    """The AI provider answered with a non-success status."""

    status_code = 502
    public_message = "AI engine returned an error. Please try again."

    def __init__(self, detail: str | None = None, status: int | None = None):
        super().__init__(detail)
        self.upstream_status = status


class UpstreamAuthFailure(UpstreamError):
    pass


class UpstreamRateLimited(UpstreamError):
    status_code = 429
    public_message = "AI engine is busy. Please try again in a few minutes."


class UpstreamTransportError(UpstreamError):
    """The AI provider could not be reached (connection error or timeout)."""


class MalformedUpstreamResponse(ScanGatewayError):
    status_code = 502
    public_message = "AI engine returned malformed results."


def upstream_error_for_status(status: int, detail: str) -> UpstreamError:
    """Pick the upstream error class for a non-success provider status."""
    if status == 401:
        return UpstreamAuthFailure(detail, status=status)
    if status == 429:
        return UpstreamRateLimited(detail, status=status)
    return UpstreamError(detail, status=status)
