"""Error taxonomy shared by the inference, detection, and versioning stages.

Per-file problems (``UnsupportedFormatError``, ``ParseError``) are isolated by the
pipeline and reported as warnings. Persistence problems abort the current run.
"""

from __future__ import annotations


class ExportValidatorError(Exception):
    """Base class for all export-validator failures."""


class InputError(ExportValidatorError, ValueError):
    """Raised when the validation input path cannot be processed at all."""


class UnsupportedFormatError(ExportValidatorError):
    """Raised for file extensions that no decoder handles."""

    def __init__(self, path: str, extension: str) -> None:
        self.path = path
        self.extension = extension
        super().__init__(f"unsupported file format {extension or '<none>'!r}: {path}")


class ParseError(ExportValidatorError):
    """Raised when a recognized format contains malformed content."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to parse {path}: {reason}")


class PersistenceError(ExportValidatorError):
    """Raised when a manifest or snapshot cannot be read or written."""


class CorruptManifestError(PersistenceError):
    """Raised when an existing manifest is unreadable and must not be overwritten."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"version manifest is corrupt: {path}: {reason}")


class VersionNotFoundError(ExportValidatorError, LookupError):
    """Raised when a requested version is not present in the manifest."""

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"version not found: {version}")


__all__ = [
    "CorruptManifestError",
    "ExportValidatorError",
    "InputError",
    "ParseError",
    "PersistenceError",
    "UnsupportedFormatError",
    "VersionNotFoundError",
]
