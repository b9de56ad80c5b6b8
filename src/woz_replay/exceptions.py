"""Exceptions raised by woz-replay."""

from typing import Optional


class WozReplayError(Exception):
    """Base class for exceptions in this package."""
    pass


class ConfigurationError(WozReplayError):
    """Raised when an environment setting cannot be interpreted."""
    pass


class ValidationError(WozReplayError):
    """A request field is missing or malformed."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class FetchError(WozReplayError):
    """Transport failure or non-2xx reply from an external service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DiscoveryError(FetchError):
    """The media listing could not be produced or fetched."""
    pass


class ParseError(WozReplayError):
    """The model reply could not be read as the expected JSON object."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class LLMError(WozReplayError):
    """The completion request itself failed."""
    pass
