"""Error taxonomy for autoremedy.

Every remote operation either returns its result or raises one of the
``GitHubError`` subclasses below. The engine adds two error kinds that are
surfaced to the caller when a run has to abort before planning:
``FeatureEnablementError`` and ``AlertFetchError``.
"""

from typing import Optional


class AutoRemedyError(Exception):
    """Base class for all autoremedy errors."""


class GitHubError(AutoRemedyError):
    """A failed call to the hosting platform."""
    
    kind = "error"
    
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status
    
    def __str__(self) -> str:
        if self.status is None:
            return f"{self.kind}: {self.message}"
        return f"{self.kind} ({self.status}): {self.message}"


class PermissionDeniedError(GitHubError):
    """The token may not perform the operation."""
    
    kind = "permission_denied"


class NotFoundError(GitHubError):
    """The resource does not exist or is not configured."""
    
    kind = "not_found"


class NotApplicableError(NotFoundError):
    """No remediation exists for the requested manifest."""
    
    kind = "not_applicable"


class ConflictError(GitHubError):
    """The resource already exists."""
    
    kind = "conflict"


class ValidationFailedError(GitHubError):
    """The request was rejected as invalid. Not retried."""
    
    kind = "validation_failed"


class TransientError(GitHubError):
    """A server-side or timeout failure that may succeed on retry."""
    
    kind = "transient"


class RateLimitedError(TransientError):
    """The platform asked us to slow down."""
    
    kind = "rate_limited"
    
    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status)
        self.retry_after = retry_after


class FatalError(GitHubError):
    """Authentication or connectivity failure; nothing else will work."""
    
    kind = "fatal"


class FeatureEnablementError(AutoRemedyError):
    """Enabling a scanning feature failed with a non-permission error."""
    
    def __init__(self, feature: str, cause: Exception):
        super().__init__(f"Failed to enable {feature}: {cause}")
        self.feature = feature
        self.cause = cause


class AlertFetchError(AutoRemedyError):
    """The alert set could not be retrieved."""
    
    def __init__(self, repository: str, cause: Exception):
        super().__init__(f"Failed to fetch alerts for {repository}: {cause}")
        self.repository = repository
        self.cause = cause


class AlertParseError(AutoRemedyError, ValueError):
    """An alert payload is missing required fields or has invalid values."""


class InvalidTransitionError(AutoRemedyError, ValueError):
    """A remediation task was moved along an edge its state machine lacks."""
