"""Error taxonomy shared by the leveling, progress and analytics components.

- GenerationError: malformed or incomplete AI output; the in-progress test or
  path generation is aborted and prior state is preserved.
- NotFoundError: a profile, path or analytics document is absent; callers
  treat it as a first-time user.
- PersistenceError: document store read/write failure.
- ValidationError: client-side rejection before any network call.
"""

from __future__ import annotations


class LearnPathError(Exception):
    """Base class for domain errors."""

    pass


class GenerationError(LearnPathError):
    """Content generator returned unusable output."""

    pass


class NotFoundError(LearnPathError):
    """Requested document does not exist."""

    pass


class PersistenceError(LearnPathError):
    """Document store failure."""

    pass


class ValidationError(LearnPathError):
    """Input rejected before reaching the store or generator."""

    pass


class AlreadyExistsError(LearnPathError):
    """An active learning path already exists for the user and subject."""

    pass


class LessonLockedError(ValidationError):
    """Lesson is not reachable until the previous one is completed."""

    pass
