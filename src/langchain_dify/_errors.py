from __future__ import annotations
from dataclasses import dataclass
from typing import Any


class DifyError(RuntimeError):
    """Base error of the library."""


@dataclass(slots=True)
class DifyAPIError(DifyError):
    """
    Dify API error with support for structured responses.

    When the backend returns a JSON error body shaped like:
    {
        "status": 400,
        "code": "invalid_param" | "app_unavailable" | "provider_quota_exceeded" | ...,
        "message": "..."
    }

    the structured fields are parsed to make debugging easier.
    """
    status_code: int
    message: str
    body: str | None = None

    # Structured API fields (optional, plain-text errors leave them empty)
    error_code: str | None = None
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        parts = [f"DifyAPIError(status_code={self.status_code}"]
        if self.error_code:
            parts.append(f", code={self.error_code!r}")
        parts.append(f", message={self.message!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"DifyAPIError("
            f"status_code={self.status_code}, "
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r}, "
            f"body={'...' if self.body else None})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a dict for structured logging."""
        return {
            "status_code": self.status_code,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "body": self.body,
        }

    @property
    def is_client_error(self) -> bool:
        """True for 4xx errors (client side problem)."""
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True for 5xx errors (server side problem)."""
        return 500 <= self.status_code < 600

    @property
    def is_auth_error(self) -> bool:
        """True for authentication (401) or authorization (403) errors."""
        return self.status_code in (401, 403)

    @property
    def is_validation_error(self) -> bool:
        """True for validation errors (400 with invalid_param)."""
        return self.status_code == 400 and self.error_code == "invalid_param"

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class DifyTransportError(DifyError):
    """
    The response byte stream is missing or ended abnormally before the
    service signalled end-of-stream.

    Text increments delivered before the failure are not retracted.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
