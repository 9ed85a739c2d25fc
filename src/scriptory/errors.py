"""Exceptions raised by the scriptory core."""


class ScriptoryError(Exception):
    """Base class for all scriptory errors."""


class NotFoundError(ScriptoryError, LookupError):
    """A referenced document, version, comment or folder does not exist."""


class InvalidInputError(ScriptoryError, ValueError):
    """Caller supplied a value the core refuses to store."""


class StorageError(ScriptoryError, OSError):
    """A primary artifact could not be read or written."""
