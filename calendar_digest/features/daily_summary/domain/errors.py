"""Exceptions raised by the daily summary pipeline."""


class ConfigurationError(Exception):
    """The configuration source or its columns are unusable; the run cannot start."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.recoverable = False


class DailySummaryJobError(Exception):
    """Custom exception for daily summary job operations."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable
