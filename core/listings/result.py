"""
Result Types - Tagged Ok/Err Outcomes for Listing Operations

Every fallible listing operation returns a Result instead of raising.
Callers branch with isinstance() on the variant:

    result = await lifecycle.publish(property_id)
    if isinstance(result, Err):
        render(result.error.kind, result.error.guard)

Error kinds:
- AUTH: identity could not be resolved or the caller has no organisation
- NOT_FOUND: record does not exist or is outside the caller's scope
- VALIDATION: malformed input
- CONFLICT: the current state does not allow the requested change
- GUARD_FAILED: a named publish precondition was not met
- UNKNOWN: unexpected upstream failure, always carries the cause
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Generic, Optional, TypeVar, Union


logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Enums
# =============================================================================


class ErrorKind(Enum):
    """Category of a listing error."""

    AUTH = "AUTH"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    GUARD_FAILED = "GUARD_FAILED"
    UNKNOWN = "UNKNOWN"


class PublishGuard(Enum):
    """Named publish preconditions, reported one by one."""

    KYC = "kyc"
    TRUST_DOCUMENT = "trust_document"
    COMPLETENESS = "completeness"


# =============================================================================
# Error
# =============================================================================


@dataclass(frozen=True)
class ListingError:
    """
    Immutable description of a failed operation.

    `scope` names the component that reported the error. Wrapped port errors
    keep the original error as `cause`, so nothing is lost on the way up.
    """

    kind: ErrorKind
    message: str
    scope: str = "listings"
    guard: Optional[PublishGuard] = None
    details: dict[str, Any] = field(default_factory=dict)
    cause: Optional[Union["ListingError", BaseException]] = None
    related: tuple["ListingError", ...] = ()

    def wrap(self, scope: str, message: Optional[str] = None) -> "ListingError":
        """Re-scope this error for the calling component, keeping it as cause."""
        return ListingError(
            kind=self.kind,
            message=message or self.message,
            scope=scope,
            guard=self.guard,
            details=dict(self.details),
            cause=self,
        )

    def with_details(self, **details: Any) -> "ListingError":
        merged = dict(self.details)
        merged.update(details)
        return replace(self, details=merged)

    @property
    def root_cause(self) -> Optional[BaseException]:
        """Walk the cause chain down to the original exception, if any."""
        cause = self.cause
        while isinstance(cause, ListingError):
            cause = cause.cause
        return cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "scope": self.scope,
            "guard": self.guard.value if self.guard else None,
            "details": dict(self.details),
        }
        if self.related:
            data["related"] = [r.to_dict() for r in self.related]
        return data


# =============================================================================
# Result Variants
# =============================================================================


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome."""

    error: ListingError

    @property
    def is_ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


# =============================================================================
# Constructors
# =============================================================================


def auth_error(message: str, scope: str = "listings", **details: Any) -> Err:
    return Err(ListingError(ErrorKind.AUTH, message, scope=scope, details=details))


def not_found(message: str, scope: str = "listings", **details: Any) -> Err:
    return Err(ListingError(ErrorKind.NOT_FOUND, message, scope=scope, details=details))


def validation_error(message: str, scope: str = "listings", **details: Any) -> Err:
    return Err(ListingError(ErrorKind.VALIDATION, message, scope=scope, details=details))


def conflict(message: str, scope: str = "listings", **details: Any) -> Err:
    return Err(ListingError(ErrorKind.CONFLICT, message, scope=scope, details=details))


def guard_failed(
    guard: PublishGuard,
    message: str,
    scope: str = "lifecycle",
    **details: Any,
) -> ListingError:
    """Build (not wrap) a guard error; publish collects several of these."""
    return ListingError(
        ErrorKind.GUARD_FAILED,
        message,
        scope=scope,
        guard=guard,
        details=details,
    )


def unknown_error(
    message: str,
    cause: Optional[Union[ListingError, BaseException]] = None,
    scope: str = "listings",
    **details: Any,
) -> Err:
    return Err(
        ListingError(ErrorKind.UNKNOWN, message, scope=scope, details=details, cause=cause)
    )


# =============================================================================
# Port Calls
# =============================================================================


async def port_call(call: Awaitable[Result[T]], scope: str) -> Result[T]:
    """
    Await a port call on behalf of a component.

    Err results are re-scoped to the component with the port's error kept as
    cause. An exception escaping the adapter becomes UNKNOWN.
    """
    try:
        result = await call
    except Exception as e:
        logger.error("Unexpected %s failure in %s: %s", type(e).__name__, scope, e)
        return unknown_error(f"Unexpected failure: {e}", cause=e, scope=scope)

    if isinstance(result, Err):
        return Err(result.error.wrap(scope))
    return result
