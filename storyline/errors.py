"""
Error types raised by the story generation pipeline.

- MalformedResponseError: model output could not be repaired into a JSON array
- RemoteServiceError: the text or image endpoint failed or answered garbage
- ImageResolutionFailure: internal to the media resolver, never surfaced
"""
from typing import Optional


class StorylineError(Exception):
    """Base class for all pipeline errors."""


class MalformedResponseError(StorylineError):
    """Raised when structured model output cannot be parsed, even after repair."""

    def __init__(self, message: str, repaired_text: Optional[str] = None):
        super().__init__(message)
        self.repaired_text = repaired_text


class RemoteServiceError(StorylineError):
    """Raised on non-success HTTP status or a malformed response envelope."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        service: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.service = service


class ImageResolutionFailure(StorylineError):
    """Image search produced no usable URL. Always absorbed into a fallback URL."""
