"""
Exceptions raised by the upload task.

All of them derive from UploadError so callers can catch a single type.
A malformed `expires` metadata value is deliberately not among them: it is
stored as plain user metadata instead.
"""


class UploadError(Exception):
    """Base class for upload task failures."""


class SourceReadError(UploadError):
    """The source file could not be queried or opened."""


class CompressionError(UploadError):
    """Writing or reading the gzip spill file failed."""


class TransferError(UploadError):
    """The storage transport could not be created or reported a failed transfer."""


class UploadCancelledError(UploadError):
    """The upload was interrupted while waiting for the transfer to finish."""
