"""Error taxonomy shared by the progression services."""

from __future__ import annotations

from typing import Literal

from sqlalchemy.exc import IntegrityError

# PostgreSQL SQLSTATE codes for integrity violations
FOREIGN_KEY_VIOLATION = "23503"
UNIQUE_VIOLATION = "23505"

IntegrityKind = Literal["foreign_key", "unique"]


class ProgressionError(Exception):
    """Base class for errors raised by the progression services."""

    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ProgressionError, LookupError):
    """A referenced player, game, exercise, registration or reward does not exist."""

    status_code = 404


class ConflictError(ProgressionError):
    """The write would duplicate an existing record."""

    status_code = 409


class InvalidRequestError(ProgressionError, ValueError):
    """The request is well-formed but not acceptable for the current state."""

    status_code = 422


class InvariantError(ProgressionError, RuntimeError):
    """Stored state contradicts an invariant (bug or corruption); the unit of work is aborted."""

    status_code = 500


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def classify_integrity_error(exc: IntegrityError) -> IntegrityKind | None:
    """Tell foreign-key violations apart from unique violations.

    Uses the SQLSTATE when the driver exposes one (asyncpg, psycopg) and falls
    back to the message text otherwise (sqlite).
    """
    code = _sqlstate(exc)
    if code == FOREIGN_KEY_VIOLATION:
        return "foreign_key"
    if code == UNIQUE_VIOLATION:
        return "unique"

    message = str(exc.orig).lower()
    if "foreign key" in message:
        return "foreign_key"
    if "unique" in message or "duplicate key" in message:
        return "unique"
    return None
