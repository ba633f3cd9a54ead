"""
Pipeline error taxonomy.

Every failure inside the pipeline is raised as a PrepareError subclass so the
driver can report the failing path and abort the run cleanly.
"""

from typing import Optional


class PrepareError(Exception):
    """Base class for all pipeline failures."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def __str__(self):
        message = super().__str__()
        if self.path:
            return f"{message} ({self.path})"
        return message


class ArchiveError(PrepareError):
    """Archive could not be opened or read."""


class PathTraversalError(ArchiveError):
    """Archive entry would be written outside the extraction directory."""


class ScanError(PrepareError):
    """Filesystem walk or open failed."""


class ParseError(PrepareError):
    """Malformed row in an entity file."""


class WriteError(PrepareError):
    """Output table or bundle could not be written."""


def raise_scan_error(error: OSError):
    """os.walk onerror hook turning access failures into ScanError."""
    raise ScanError(f"Failure to access path: {error.strerror or error}", path=error.filename) from error
