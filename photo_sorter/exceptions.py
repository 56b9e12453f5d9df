"""
Custom exception hierarchy for the photo sorter application.

Per-file errors (hashing, metadata, moves) are caught by the sorter, logged,
and the file is left in place. UndoLogError and IncomingWalkError abort the run.
"""


class PhotoSorterError(Exception):
    """Base exception for all photo sorter errors."""
    pass


class FileHashError(PhotoSorterError):
    """Raised when a file cannot be opened or read for fingerprinting."""
    pass


class MetadataExtractionError(PhotoSorterError):
    """Raised when metadata cannot be extracted from a file."""
    pass


class TimestampUnavailableError(MetadataExtractionError):
    """Raised when neither embedded nor sidecar metadata yields a capture time."""
    pass


class SidecarParseError(MetadataExtractionError):
    """Raised when a sidecar JSON file is structurally invalid or unreadable."""
    pass


class FileOperationError(PhotoSorterError):
    """Raised when file move operations fail."""
    pass


class DecollisionExhaustedError(FileOperationError):
    """Raised when no free destination name is found within the attempt limit."""
    pass


class UndoLogError(PhotoSorterError):
    """Raised when the undo log cannot be written. Fatal to the run."""
    pass


class IncomingWalkError(PhotoSorterError):
    """Raised when the incoming tree itself cannot be walked. Fatal to the run."""
    pass
