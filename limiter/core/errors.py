"""Application-level exception types.

This module defines the errors raised by the admission layer, enabling
consistent error handling, logging, and API responses.

Taxonomy:
- IdentityResolutionError: the caller identity could not be extracted.
- StoreUnavailableError: the counter backend failed or timed out.
- QuotaExceeded: not a fault; the expected outcome of a throttled request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from limiter.services.quota import RateLimitResult


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    remote_addr: str
    attribute: str
    actual_type: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Raised when limiter settings cannot be turned into components."""


class IdentityResolutionError(AppError):
    """Raised when a request's identity cannot be extracted."""


class AddressParseError(IdentityResolutionError):
    """Raised when the peer address cannot be split into host and port."""


class TypeMismatchError(IdentityResolutionError):
    """Raised when a request-state identity is present but not a string."""


class StoreUnavailableError(AppError):
    """Raised when the counter store is unreachable or its transaction fails.

    A store call that raised this error must not be assumed to have
    incremented the counter.
    """


@dataclass
class QuotaExceeded(AppError):
    """Raised by the dependency form of the limiter when a request is denied.

    Carries the decision so handlers can publish the rate-limit metadata.
    """

    code: str = "rate_limit_exceeded"
    message: str = "Too Many Requests"
    details: ErrorDetails | None = None
    result: RateLimitResult | None = field(default=None, kw_only=True)
