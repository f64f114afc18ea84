"""Exceptions raised by the upstream client."""

from __future__ import annotations

from typing import Any

_STATUS_REASONS = {
    401: "Authentication failed - Invalid API key",
    403: "Access forbidden - Check permissions",
    404: "Resource not found",
    422: "Validation error",
    429: "Rate limit exceeded",
}


class UpstreamError(RuntimeError):
    """The upstream API rejected a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        method: str | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.url = url

    @classmethod
    def from_response(
        cls,
        status_code: int,
        body: Any,
        *,
        method: str | None = None,
        url: str | None = None,
    ) -> UpstreamError:
        """Build an error describing an unsuccessful API response."""
        message = f"API Error {status_code}"
        if method and url:
            message += f" ({method} {url})"

        reason = _STATUS_REASONS.get(status_code)
        if reason is None and status_code >= 500:
            reason = "Server error"
        if reason:
            message += f": {reason}"

        if isinstance(body, dict):
            detail = body.get("error") or body.get("message")
            if detail:
                message += f" - {detail}"
            errors = body.get("errors")
            if isinstance(errors, dict) and errors:
                fields = "; ".join(
                    f"{field}: {', '.join(map(str, msgs)) if isinstance(msgs, list) else msgs}"
                    for field, msgs in errors.items()
                )
                message += f" | Validation: {fields}"

        return cls(message, status_code=status_code, method=method, url=url)


class UpstreamConnectionError(UpstreamError):
    """No response was received from the upstream API."""
