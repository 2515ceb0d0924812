"""Exception hierarchy for json-locale-merge."""

from __future__ import annotations


class LocaleMergeError(Exception):
    """Base class for every error raised by this package."""


class InvalidTreeError(LocaleMergeError, ValueError):
    """A locale tree contains a value that is not a string, null or object."""

    def __init__(self, path: str, value) -> None:
        self.path = path
        self.value = value
        super().__init__(
            f"Unsupported value at '{path}': {type(value).__name__} "
            "(locale trees may only contain strings and objects)"
        )


class ConflictingPathError(LocaleMergeError):
    """A path uses an existing leaf as an internal node, or the reverse."""

    def __init__(self, path: str, conflict: str) -> None:
        self.path = path
        self.conflict = conflict
        super().__init__(f"Path '{path}' conflicts with existing leaf or node at '{conflict}'")


class TranslatorError(LocaleMergeError):
    """The translator failed for one chunk (provider, network or parsing error)."""

    def __init__(
        self,
        message: str,
        provider: str = "translator",
        operation: str = "translate",
        retryable: bool = False,
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.retryable = retryable
        super().__init__(message)


class EmptyNormalizationError(TranslatorError):
    """No requested path could be recovered from a translator response."""

    def __init__(self, requested: int) -> None:
        self.requested = requested
        super().__init__(
            f"Response contained none of the {requested} requested paths",
            operation="normalize",
        )


class RunError(LocaleMergeError):
    """A run could not start; raised before any chunk is attempted."""


class NoChangesError(RunError):
    """Base and target are already in sync."""


class CommitError(LocaleMergeError):
    """Writing the merged result to disk failed.

    The target and snapshot are left as they were, unless restoring the
    previous target after a snapshot failure also failed. In that case
    ``__context__`` holds the restore error.
    """

    def __init__(self, path, cause: Exception) -> None:
        self.path = path
        super().__init__(f"Could not write {path}: {cause}")
        self.__cause__ = cause


class ConfigError(LocaleMergeError, ValueError):
    """Invalid configuration value."""
