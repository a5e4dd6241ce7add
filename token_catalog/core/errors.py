"""Typed errors surfaced by the catalog engine.

Every entry point either returns a typed payload or raises one of these.
The API layer renders them as ``{"error": kind, "message": ...}`` with the
status code carried by the class.

- InvalidInputError: malformed batch, missing fields, bad identifiers.
- NotFoundError: unknown token or family id.
- ConflictError: identity-key race during a token upsert.
- TransientError: store timeout or connectivity failure, safe to retry.
- InvariantError: a recompute observed state it should not have.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

__all__ = [
    "CatalogError",
    "InvalidInputError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "InvariantError",
    "translate_store_errors",
]


class CatalogError(Exception):
    """Base class for every categorized catalog failure."""

    kind = "CatalogError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class InvalidInputError(CatalogError):
    kind = "InvalidInput"
    status_code = 400


class NotFoundError(CatalogError):
    kind = "NotFound"
    status_code = 404


class ConflictError(CatalogError):
    kind = "Conflict"
    status_code = 409


class TransientError(CatalogError):
    kind = "Transient"
    status_code = 503


class InvariantError(CatalogError):
    kind = "Invariant"
    status_code = 500


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """Re-raise store exceptions as categorized catalog errors.

    Connectivity problems and timeouts become TransientError, values the store
    refuses become InvalidInputError and constraint races become ConflictError.
    Any other driver failure is treated as transient.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        raise TransientError(f"{operation} failed: {exc.__class__.__name__}") from exc
    except DataError as exc:
        raise InvalidInputError(f"{operation} rejected by store: {exc.orig}") from exc
    except IntegrityError as exc:
        raise ConflictError(f"{operation} hit a constraint violation: {exc.orig}") from exc
    except DBAPIError as exc:
        raise TransientError(f"{operation} failed: {exc.__class__.__name__}") from exc
