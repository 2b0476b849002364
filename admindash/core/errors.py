"""
Error taxonomy for backend calls.

Every failure coming back from Supabase is classified into one ErrorKind so that
handling sites branch on a closed set instead of matching raw PostgREST codes.
"""

import asyncio
from enum import Enum
from typing import Optional

import httpx
from postgrest.exceptions import APIError


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    MULTIPLE_ROWS = "multiple_rows"
    ACCESS_DENIED = "access_denied"
    TIMEOUT = "timeout"
    MISSING_RELATIONSHIP = "missing_relationship"
    VALIDATION = "validation"
    MUTATION_FAILED = "mutation_failed"
    UNKNOWN = "unknown"


# Read failures that leave the user usable but unprivileged
DEGRADE_KINDS = frozenset({ErrorKind.ACCESS_DENIED, ErrorKind.TIMEOUT})

# PostgREST / Postgres codes
NO_OR_MANY_ROWS_CODE = "PGRST116"
MISSING_RELATIONSHIP_CODE = "PGRST200"
ACCESS_DENIED_CODES = frozenset({"42501", "PGRST301", "PGRST302"})
UNIQUE_VIOLATION_CODE = "23505"


class BackendError(Exception):
    def __init__(self, kind: ErrorKind, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return f"BackendError(kind={self.kind.value!r}, code={self.code!r}, message={self.message!r})"


class MissingConfigurationError(Exception):
    """Raised when the Supabase URL or key is absent from the environment."""

    def __init__(self, missing: list):
        super().__init__(f"Missing configuration: {', '.join(missing)}")
        self.missing = list(missing)


def _classify_api_error(exc: APIError) -> ErrorKind:
    code = exc.code or ""
    if code == NO_OR_MANY_ROWS_CODE:
        # "The result contains 0 rows" vs "The result contains 2 rows"
        details = (exc.details or "").lower()
        if " 0 rows" in details or "no rows" in details:
            return ErrorKind.NOT_FOUND
        return ErrorKind.MULTIPLE_ROWS
    if code == MISSING_RELATIONSHIP_CODE:
        return ErrorKind.MISSING_RELATIONSHIP
    if code in ACCESS_DENIED_CODES:
        return ErrorKind.ACCESS_DENIED
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, BackendError):
        return exc.kind
    if isinstance(exc, APIError):
        return _classify_api_error(exc)
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT
    return ErrorKind.UNKNOWN


def is_unique_violation(exc: BaseException) -> bool:
    return isinstance(exc, APIError) and exc.code == UNIQUE_VIOLATION_CODE


def to_backend_error(exc: BaseException, kind: Optional[ErrorKind] = None) -> BackendError:
    """Wrap any exception as a BackendError, keeping the PostgREST code when there is one."""
    if isinstance(exc, BackendError) and kind is None:
        return exc
    code = exc.code if isinstance(exc, APIError) else None
    message = exc.message if isinstance(exc, APIError) else str(exc)
    return BackendError(kind or classify_error(exc), message or exc.__class__.__name__, code)


async def with_timeout(awaitable, timeout: float):
    """Await a backend call, converting an expired deadline into a TIMEOUT BackendError."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError:
        raise BackendError(ErrorKind.TIMEOUT, f"Query timeout after {timeout}s")
