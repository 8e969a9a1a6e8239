"""
Error taxonomy for the ainotes storage engine.

Every failure raised by a storage backend derives from StorageError so
callers can catch the whole family at once, while the subclasses let them
tell configuration problems (NotInitializedError, BackendReselectedError)
apart from data problems (NoteNotFoundError, WriteRejectedError).

Remote failures carry the backend-native diagnostic fields (code, hint,
details) reported by PostgREST so they can be displayed or logged verbatim.
"""

from typing import Any, Optional


class StorageError(Exception):
    """
    Base class for every storage failure.

    Parameters
    ----------
    message : str
        Human-readable description of the failure.
    code : str | None
        Backend-native error code (e.g. a PostgREST or Postgres SQLSTATE code).
    hint : str | None
        Backend-native hint, when the backend supplies one.
    details : Any
        Backend-native details payload, when the backend supplies one.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        hint: Optional[str] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.hint = hint
        self.details = details

    def __str__(self) -> str:
        text = self.message
        if self.code:
            text = f"{text} (code={self.code})"
        if self.hint:
            text = f"{text}. {self.hint}"
        return text


class NotInitializedError(StorageError):
    """An operation was invoked before the backend finished initialize()."""


class BackendReselectedError(StorageError):
    """The backend was retired by a configuration change while in use."""


class NoteNotFoundError(StorageError):
    """An update or delete targeted a note id that does not exist."""

    def __init__(self, note_id: str) -> None:
        super().__init__(f"Note not found: {note_id}")
        self.note_id = note_id


class WriteRejectedError(StorageError):
    """The persistence layer refused a write (constraint or connectivity)."""


class DimensionMismatchError(StorageError):
    """
    Two vectors of different length met in a comparison or a write.

    Normalization runs on every write and query path, so seeing this error
    means a code path skipped normalize_embedding().
    """


class ConfigurationError(Exception):
    """The supplied configuration cannot produce a working backend."""
