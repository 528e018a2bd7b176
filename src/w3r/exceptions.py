from typing import Optional


class W3rError(Exception):
    """Base class for exceptions raised by w3r."""

    exit_code = 1

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(W3rError):
    """Exception raised when the request configuration cannot be resolved."""

    exit_code = 2


class MissingUrlError(ConfigError):
    """Exception raised when no source supplies a URL."""

    def __init__(self, message: str = "No URL given (use -u/--url or a preset 'url')"):
        super().__init__(message)


class ConflictingBodyError(ConfigError):
    """Exception raised when more than one request body source is populated."""

    def __init__(self, sources):
        self.sources = tuple(sources)
        names = ", ".join(self.sources)
        super().__init__(f"Only one request body may be given, got: {names}")


class InvalidPresetError(ConfigError):
    """Exception raised for unreadable preset files or unknown preset names."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class InvalidValueError(ConfigError):
    """Exception raised for a malformed configuration value."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class FilterError(W3rError):
    """
    Error applying a JSON path filter to a response body.

    This is never fatal: the response was received, only the formatting
    step failed.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class OutputError(W3rError):
    """Exception raised when the response cannot be written to the output file."""

    pass


class RetryExhaustedError(W3rError):
    """Exception raised when every attempt ended in a retryable failure."""

    def __init__(self, message: str, attempts: int, outcome=None):
        self.attempts = attempts
        self.outcome = outcome
        super().__init__(message)
