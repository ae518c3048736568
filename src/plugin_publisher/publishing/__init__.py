"""Publish pipeline: requests, review state machine and build completion."""

from .errors import (
    AuthenticationFailure,
    ExtractionError,
    InvalidTransitionError,
    PublishingError,
    PublishValidationError,
    UpstreamInconsistencyError,
)

__all__ = [
    "AuthenticationFailure",
    "ExtractionError",
    "InvalidTransitionError",
    "PublishingError",
    "PublishValidationError",
    "UpstreamInconsistencyError",
]
