"""Exceptions raised while extracting and rendering a DANFSe."""
from typing import Optional


class DanfseError(Exception):
    """Base class for all DANFSe errors."""


class ParseError(DanfseError):
    """Raised when the NFS-e XML is malformed or misses a required field.

    This is the only fatal error: it aborts the render before any layout
    work begins.
    """

    def __init__(self, reason: str, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        if field:
            message = f"Invalid NFS-e XML ({field}): {reason}"
        else:
            message = f"Invalid NFS-e XML: {reason}"
        super().__init__(message)


class AssetMissing(DanfseError):
    """Raised when an optional image asset (logo, crest) cannot be found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Image asset not found: {path}")


class UnmappedCode(DanfseError):
    """Raised by a strict code lookup when a code has no table entry."""

    def __init__(self, table: str, code: object):
        self.table = table
        self.code = code
        super().__init__(f"Code {code!r} is not mapped in table '{table}'")
