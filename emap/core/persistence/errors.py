"""
Store error taxonomy.

Every store and lifecycle operation either returns a value or raises one
of these.  The HTTP layer maps them to status codes; nothing below the
web layer turns them into process exits.

``NO_ACTIVE_PROJECT`` is not an exception.  The read-through accessors
return it as a value when the slot is empty.
"""

from __future__ import annotations

from enum import Enum


class StoreError(Exception):
    """Base class for all persistence failures."""


class IOFailure(StoreError):
    """Disk or path problem (cannot open, create or remove)."""


class SchemaFailure(StoreError):
    """The required tables could not be created."""


class WriteFailure(StoreError):
    """The database rejected a mutation."""


class LockTimeout(StoreError):
    """The bounded busy wait expired.  Transient; callers may retry."""


class NotFound(StoreError):
    """Requested id, file or store is absent."""


class DuplicateId(StoreError):
    """A freshly generated project id collided with an existing row."""


class Conflict(StoreError):
    """Target file exists and overwrite was not requested."""


class _NoActiveProject(Enum):
    NO_ACTIVE_PROJECT = "no_active_project"

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_ACTIVE_PROJECT"


NO_ACTIVE_PROJECT = _NoActiveProject.NO_ACTIVE_PROJECT
NoActiveProjectType = _NoActiveProject
