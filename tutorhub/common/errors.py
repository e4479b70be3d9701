"""Domain error taxonomy shared by the payments and parent-call services.

Every error carries a stable `code` that HTTP handlers put in the response
body so clients can tell e.g. a quota rejection from an invalid transition.
"""


class TutorHubError(Exception):
    """Base class for errors raised by service logic."""

    code = "internal_error"


class AuthenticationFailure(TutorHubError):
    """Webhook signature missing or invalid; nothing was parsed or applied."""

    code = "invalid_signature"


class MalformedPayload(TutorHubError):
    """Verified webhook body that is not a JSON object of the expected shape."""

    code = "malformed_payload"


class NotFound(TutorHubError):
    """Referenced payment, call, or enrollment does not exist."""

    code = "not_found"


class InvalidStateTransition(TutorHubError, ValueError):
    """Attempted transition out of a terminal state."""

    code = "invalid_state_transition"

    def __init__(self, message: str, current: str | None = None, target: str | None = None) -> None:
        super().__init__(message)
        self.current = current
        self.target = target


class QuotaExceeded(TutorHubError):
    """Parent call quota for the current window is used up."""

    code = "quota_exceeded"

    def __init__(self, quota) -> None:
        super().__init__(f"parent call quota exhausted ({quota.used}/{quota.max} this month)")
        self.quota = quota


class UpstreamStoreFailure(TutorHubError):
    """Row store I/O error, wrapped with the operation that was running."""

    code = "store_failure"

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause
