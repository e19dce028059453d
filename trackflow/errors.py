"""
TrackFlow error taxonomy.

Every repository operation either completes fully or raises one of these
before anything is changed.
"""


class TrackFlowError(Exception):
    """Base class for all TrackFlow errors."""
    pass


class ValidationError(TrackFlowError):
    """Raised when a required field (name, label, title) is empty or invalid."""
    pass


class NotFoundError(TrackFlowError):
    """Raised when a board, column, task or user id does not exist."""
    pass


class InvariantViolation(TrackFlowError):
    """Raised when an operation would break a structural invariant."""
    pass


class PermissionDenied(TrackFlowError):
    """Raised when the current user's role does not grant an action."""
    pass


class ConfigError(TrackFlowError):
    """Raised when configuration is invalid or unreadable."""
    pass
