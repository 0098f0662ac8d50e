# =============================================================================
# Exceptions for the ED trade finder
# =============================================================================

from typing import Optional


class RosterError(Exception):
    """Base exception for roster ingestion and trade analysis."""
    pass


class ConfigurationError(RosterError):
    """Raised when required configuration (e.g. the feed URL) is missing or invalid."""
    pass


class RetrievalError(RosterError):
    """Raised when the calendar feed or an uploaded file cannot be read.

    `status` holds the upstream HTTP status when there was one.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    def __str__(self):
        message = super().__str__()
        if self.status is not None:
            return f"{message} (status {self.status})"
        return message


class SoftParseError(RosterError):
    """Raised for a single event block or cell that does not match the expected shape.

    Always caught by the batch loop; the record is skipped.
    """
    pass


class ValidationError(RosterError):
    """Raised when a write-path input is missing a required field."""
    pass
