"""Domain exceptions raised by the import pipeline.

Request-level errors (bad upload, unknown user) are raised before any job exists and are
translated to HTTP errors by the API layer. File-level errors raised inside the background
task move the job to FAILED.
"""


class ImportServiceError(Exception):
    """Base class for all import pipeline errors."""


class UnsupportedFileError(ImportServiceError):
    """The file extension or MIME type is not an accepted import format."""


class FileTooLargeError(ImportServiceError):
    """The upload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int) -> None:
        """Build the error message from the actual and allowed sizes."""
        super().__init__(f"File is {size} bytes, the limit is {limit} bytes")
        self.size = size
        self.limit = limit


class FileParseError(ImportServiceError):
    """The file structure could not be read (corrupt workbook, undecodable CSV)."""


class UserNotFoundError(ImportServiceError):
    """The submitting user does not exist."""
