"""Exception hierarchy for skill lifecycle operations.

Every error raised by the manager, the queue, or the sandboxed file accessor
derives from ``SkillError``. Filesystem ``OSError``s raised inside a queued
operation are not wrapped; they reach the caller unchanged.
"""

from __future__ import annotations


class SkillError(Exception):
    """Base class for skill lifecycle failures."""


class SkillValidationError(SkillError):
    """Bad skill name or bad relative file path."""


class SkillNotFoundError(SkillError):
    """Skill, archived entry, or file does not exist."""


class SkillConflictError(SkillError):
    """Name already taken, online or in the archive."""


class BoundaryViolationError(SkillError):
    """A path resolves outside the skill directory it is scoped to."""


class ArchivedSkillError(SkillError):
    """Operation is not allowed on a skill that lives in the archive."""


class OperationTimeoutError(SkillError, TimeoutError):
    """The caller's wait budget ran out before the operation settled.

    The operation itself is not cancelled and may still complete.
    """


class ExecutionError(SkillError):
    """Opaque failure from inside an operation body (e.g. a sandbox command)."""
