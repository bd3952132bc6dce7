"""Exception hierarchy shared by the core and infrastructure layers."""

from __future__ import annotations


class PhotagError(Exception):
    """Base class for all photag errors."""


class StoreError(PhotagError):
    """A store file could not be read, parsed or written."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class CodecError(PhotagError):
    """JPEG bytes could not be decoded, or the derivative could not be encoded."""


class ExifError(PhotagError):
    """EXIF metadata is missing or unparsable."""


class ValidationError(PhotagError):
    """A user edit was refused because a required field is missing or invalid."""

    def __init__(self, field_name: str, message: str) -> None:
        super().__init__(message)
        self.field_name = field_name
