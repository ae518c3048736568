"""Error taxonomy for the publishing pipeline.

Each error carries the HTTP status it maps to at the API boundary, where
it is rendered as ``{"error": message}``. ExtractionError and
InvalidTransitionError are normally handled inside the service.
"""


class PublishingError(Exception):
    """Base class for publishing pipeline failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationFailure(PublishingError):
    """Bad or missing request signature."""

    status_code = 401


class PublishValidationError(PublishingError):
    """Rejected submission, such as a banned plugin name."""

    status_code = 400


class ExtractionError(PublishingError):
    """Dispatch inputs could not be recovered from a CI run's logs."""

    status_code = 422


class InvalidTransitionError(PublishingError):
    """An event arrived for a request already in a terminal state."""

    status_code = 409


class UpstreamInconsistencyError(PublishingError):
    """Upstream state we cannot reconcile (unknown CI conclusion, failed edit)."""

    status_code = 500
