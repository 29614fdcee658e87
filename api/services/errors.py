"""
Error taxonomy for the mission core and the helpers that apply it.

Every core operation raises one of the ``MissionDataError`` subclasses.
Whether the caller sees that exception or a null/false/empty result is decided
per operation at the service boundary:

- fail-loud operations (create mission, get mission) let the error propagate
- fail-soft operations are wrapped in ``@fail_soft(default)`` which logs the
  error and returns ``default``

``persistence_guard`` is the only place a raw ``SQLAlchemyError`` is caught and
``row_mapping_guard`` the only place a stored row failing schema validation is.
"""

import copy
import functools
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Iterable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession


class MissionDataError(Exception):
    """Base class for mission/task core errors."""


class PersistenceError(MissionDataError):
    """The storage round trip failed (connection, constraint, permission)."""

    def __init__(self, action: str, cause: Optional[BaseException] = None):
        self.action = action
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {action}{detail}")


class NoDataReturnedError(MissionDataError):
    """The store reported success but returned no row where one was expected."""


class InvalidRowError(MissionDataError):
    """A stored row holds values the response schema rejects (e.g. an unknown enum value)."""

    def __init__(self, what: str, cause: Optional[BaseException] = None):
        self.what = what
        self.cause = cause
        super().__init__(f"Invalid stored {what}: {cause}")


class NotFoundError(MissionDataError):
    """No row matched. Surfaces to callers as ``None``/``False``."""


class TaskSetMismatchError(MissionDataError):
    """A reorder request is not a permutation of the mission's current task ids."""

    def __init__(
        self,
        mission_id: str,
        missing: Iterable[str] = (),
        unexpected: Iterable[str] = (),
        duplicates: Iterable[str] = (),
        expected_count: int = 0,
        given_count: int = 0,
    ):
        self.mission_id = mission_id
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        self.duplicates = sorted(duplicates)
        self.expected_count = expected_count
        self.given_count = given_count
        super().__init__(
            f"Task set mismatch for mission {mission_id}: "
            f"expected {expected_count} ids, got {given_count} "
            f"(missing={self.missing}, unexpected={self.unexpected}, duplicates={self.duplicates})"
        )

    def to_dict(self) -> dict:
        return {
            "mission_id": self.mission_id,
            "missing": self.missing,
            "unexpected": self.unexpected,
            "duplicates": self.duplicates,
            "expected_count": self.expected_count,
            "given_count": self.given_count,
        }


@asynccontextmanager
async def persistence_guard(db: AsyncSession, action: str):
    """Roll back and re-raise store failures as ``PersistenceError``."""
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(action, e) from e


@contextmanager
def row_mapping_guard(what: str):
    """Re-raise schema validation of stored rows as ``InvalidRowError``."""
    try:
        yield
    except ValidationError as e:
        raise InvalidRowError(what, e) from e


def fail_soft(default, reraise: tuple = ()):
    """Swallow ``MissionDataError`` from an async service method and return ``default``.

    Exception types listed in ``reraise`` still propagate (used by reorder to
    surface validation failures while swallowing store failures).
    """
    def decorator(func):
        log = logging.getLogger(func.__module__)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except reraise:
                raise
            except MissionDataError as e:
                log.error(f"{func.__name__} failed: {e}")
                return copy.copy(default)

        return wrapper

    return decorator
