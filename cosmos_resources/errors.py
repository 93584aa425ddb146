"""
Error taxonomy and Cosmos SDK error translation.

Every error raised by this package derives from CosmosResourceError and
carries an ErrorKind.  Retry loops match on classify(exc) rather than on
concrete exception classes.

SDK exceptions are translated at the store boundary only for the three
outcomes the read/write protocol cares about (404, 409, 412); anything
else propagates unchanged.
"""

from __future__ import annotations

import errno
import ipaddress
from enum import Enum
from urllib.parse import urlparse

from azure.cosmos import exceptions as cosmos_exceptions


class ErrorKind(Enum):
    UNKNOWN_RESOURCE = "unknown-resource"
    DUPLICATE_REGISTRATION = "duplicate-registration"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    VERSION_CONFLICT = "version-conflict"
    INVALID = "invalid"
    ALREADY_RUNNING = "already-running"
    SERVICE_UNAVAILABLE = "service-unavailable"


class CosmosResourceError(Exception):
    kind: ErrorKind


class UnknownResource(CosmosResourceError):
    """No container binding exists for a resource type."""

    kind = ErrorKind.UNKNOWN_RESOURCE


class DuplicateRegistration(CosmosResourceError):
    """A resource type (or its generic family) was registered twice."""

    kind = ErrorKind.DUPLICATE_REGISTRATION


class NotFound(CosmosResourceError):
    kind = ErrorKind.NOT_FOUND


class AlreadyExists(CosmosResourceError):
    kind = ErrorKind.ALREADY_EXISTS


class VersionConflict(CosmosResourceError):
    """The document's ETag no longer matches the one supplied on replace."""

    kind = ErrorKind.VERSION_CONFLICT


class InvalidResource(CosmosResourceError, ValueError):
    kind = ErrorKind.INVALID


class InvalidDefault(InvalidResource):
    """The default-document factory returned a document without id/partition key."""


class AlreadyRunning(CosmosResourceError, RuntimeError):
    kind = ErrorKind.ALREADY_RUNNING


class CosmosEmulatorNotRunning(CosmosResourceError, ConnectionError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


def classify(exc: BaseException) -> ErrorKind | None:
    """Return the ErrorKind of a package error, or None for anything else."""
    if isinstance(exc, CosmosResourceError):
        return exc.kind
    return None


def translate(exc: cosmos_exceptions.CosmosHttpResponseError) -> Exception:
    """Map an SDK response error onto the package taxonomy.

    Returns the original exception when it has no counterpart.
    """
    if isinstance(exc, cosmos_exceptions.CosmosResourceNotFoundError) or exc.status_code == 404:
        return NotFound(exc.message or "Resource not found")
    if isinstance(exc, cosmos_exceptions.CosmosResourceExistsError) or exc.status_code == 409:
        return AlreadyExists(exc.message or "Resource already exists")
    if isinstance(exc, cosmos_exceptions.CosmosAccessConditionFailedError) or exc.status_code == 412:
        return VersionConflict(exc.message or "ETag precondition failed")
    return exc


# ---------------------------------------------------------------------------
# Local emulator diagnostics
# ---------------------------------------------------------------------------


def is_loopback_endpoint(endpoint: str) -> bool:
    host = urlparse(endpoint).hostname or ""
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def is_connection_refused(exc: BaseException | None, _seen: set[int] | None = None) -> bool:
    """True if exc, or anything it wraps, is a refused connection.

    Walks exception groups, __cause__/__context__ chains and the
    azure-core ``inner_exception`` attribute.
    """
    if exc is None:
        return False
    seen = _seen if _seen is not None else set()
    if id(exc) in seen:
        return False
    seen.add(id(exc))

    if isinstance(exc, ConnectionRefusedError):
        return True
    if isinstance(exc, OSError) and exc.errno == errno.ECONNREFUSED:
        return True
    if isinstance(exc, BaseExceptionGroup):
        if any(is_connection_refused(e, seen) for e in exc.exceptions):
            return True

    inner = getattr(exc, "inner_exception", None)
    return (
        is_connection_refused(inner, seen)
        or is_connection_refused(exc.__cause__, seen)
        or is_connection_refused(exc.__context__, seen)
    )


def emulator_diagnostic(exc: BaseException, endpoint: str) -> BaseException:
    """Rewrite a refused connection against a loopback endpoint.

    Returns CosmosEmulatorNotRunning when the emulator is evidently not
    started, otherwise the original exception.
    """
    if is_loopback_endpoint(endpoint) and is_connection_refused(exc):
        return CosmosEmulatorNotRunning("Please start Cosmos DB Emulator")
    return exc
