"""
PeakStreak Backend: Error Taxonomy
===================================

What:  A closed set of error kinds plus the exception hierarchy that carries them.
Why:   Callers branch on *what went wrong* (`err.kind`), never on exception
       identity or message text. The HTTP layer maps each kind to one status
       code in a single handler.
How:   Every application error is a `PeakStreakError` with a `kind`, a
       client-safe `message` and a `context` dict that is logged but never
       returned to API consumers. Subclasses exist so call sites read well
       (`raise AccessDeniedError()`) and always pin their kind.

Exception Hierarchy:
    PeakStreakError (base, kind = INTERNAL unless a subclass says otherwise)
    ├── NotFoundError             NOT_FOUND
    ├── AccessDeniedError         ACCESS_DENIED
    ├── DuplicateUsernameError    DUPLICATE_USERNAME
    ├── DuplicateEmailError       DUPLICATE_EMAIL
    ├── InvalidCredentialsError   INVALID_CREDENTIALS
    ├── CannotFollowSelfError     CANNOT_FOLLOW_SELF
    ├── ValidationError           VALIDATION
    ├── UnauthenticatedError      UNAUTHENTICATED
    ├── OperationCancelledError   CANCELLED
    ├── DeadlineExceededError     DEADLINE_EXCEEDED
    └── InternalError             INTERNAL

Propagation policy:
    Services never swallow errors and never retry. Anything a gateway raises
    that is not already a `PeakStreakError` goes through `translate_errors()`,
    which turns timeouts into DEADLINE_EXCEEDED and wraps everything else as
    INTERNAL with the original exception chained (`__cause__`).
"""

import asyncio
import enum
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    DUPLICATE_USERNAME = "duplicate_username"
    DUPLICATE_EMAIL = "duplicate_email"
    INVALID_CREDENTIALS = "invalid_credentials"
    CANNOT_FOLLOW_SELF = "cannot_follow_self"
    VALIDATION = "validation_error"
    UNAUTHENTICATED = "unauthenticated"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    INTERNAL = "internal_error"


class PeakStreakError(Exception):
    """
    Base exception for all PeakStreak application errors.

    Attributes:
        kind:     The ErrorKind callers match on.
        message:  User-facing description (safe to return in an API response).
        context:  Debug info (logged, NOT returned to the client).
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        kind: Optional[ErrorKind] = None,
    ):
        if kind is not None:
            self.kind = kind
        self.message = message or self.default_message
        self.context = context or {}
        super().__init__(self.message)

    def wrap(self, operation: str) -> "PeakStreakError":
        """
        Return a copy of this error whose message names the failed operation.

        The kind (and therefore the HTTP status) is preserved so a wrapped
        NOT_FOUND is still a NOT_FOUND. The original error is chained.
        """
        wrapped = PeakStreakError(
            message=f"{operation}: {self.message}",
            context={**self.context, "operation": operation},
            kind=self.kind,
        )
        wrapped.__cause__ = self
        return wrapped

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(kind={self.kind.value}, message={self.message!r})>"


class NotFoundError(PeakStreakError):
    """
    Raised when a requested resource does not exist.

    Gateways return "nothing" (None, zero rows affected) for missing rows;
    the gateway converts that into this error so services never test for None.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource


class AccessDeniedError(PeakStreakError):
    """The resource exists (or may exist) but the caller does not own it."""

    kind = ErrorKind.ACCESS_DENIED
    default_message = "user does not have permission to access this resource"


class DuplicateUsernameError(PeakStreakError):
    kind = ErrorKind.DUPLICATE_USERNAME
    default_message = "username already exists"


class DuplicateEmailError(PeakStreakError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = "email already exists"


class InvalidCredentialsError(PeakStreakError):
    """
    Login failure. Deliberately the same for "no such user" and
    "wrong password" so responses cannot be used to enumerate accounts.
    """

    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "invalid credentials"


class CannotFollowSelfError(PeakStreakError):
    kind = ErrorKind.CANNOT_FOLLOW_SELF
    default_message = "cannot follow yourself"


class ValidationError(PeakStreakError):
    """Client input that passed schema validation but broke a business rule."""

    kind = ErrorKind.VALIDATION
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthenticatedError(PeakStreakError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "authentication required"


class OperationCancelledError(PeakStreakError):
    kind = ErrorKind.CANCELLED
    default_message = "the operation was cancelled"


class DeadlineExceededError(PeakStreakError):
    kind = ErrorKind.DEADLINE_EXCEEDED
    default_message = "the operation did not finish before its deadline"


class InternalError(PeakStreakError):
    """
    Opaque wrapper for anything unclassified (driver errors, bugs).

    Security Note:
        Only the original exception's type name goes into `context`. The
        message never contains SQL, constraint names or stack details.
    """

    kind = ErrorKind.INTERNAL
    default_message = "An internal error occurred. Please try again later."


def classify_error(exc: BaseException, operation: str) -> PeakStreakError:
    """
    Map any exception to a PeakStreakError without losing its cause.

    Used at the aggregation barrier, where sub-read results may be raw
    exceptions (including `asyncio.CancelledError` from a cancelled sub-read).
    """
    if isinstance(exc, PeakStreakError):
        return exc
    if isinstance(exc, asyncio.CancelledError):
        err: PeakStreakError = OperationCancelledError(context={"operation": operation})
    elif isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        err = DeadlineExceededError(context={"operation": operation})
    else:
        logger.error("Unclassified failure during %s: %s", operation, type(exc).__name__)
        err = InternalError(context={"operation": operation, "original_error": type(exc).__name__})
    err.__cause__ = exc
    return err


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """
    Classify gateway failures raised inside the block.

    PeakStreakErrors pass through untouched. `asyncio.CancelledError` is a
    BaseException and is NOT caught here: cancelling the current task must
    keep propagating as cancellation.

    Usage:
        with translate_errors("update habit"):
            await self._gateway.update_habit(habit)
    """
    try:
        yield
    except PeakStreakError:
        raise
    except Exception as exc:
        raise classify_error(exc, operation) from exc
