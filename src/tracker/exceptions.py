"""Custom exceptions for wheel tracker operations."""


class TrackerError(Exception):
    """Base exception for tracker operations."""

    pass


class ValidationError(TrackerError, ValueError):
    """Malformed input rejected before it reaches the state machine.

    Attributes:
        field: Name of the offending field, when known
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class TransitionError(TrackerError):
    """Event not allowed for the position's current state or ordering."""

    pass


class ConcurrencyError(TransitionError):
    """Position version changed since it was read."""

    def __init__(self, position_id: str, expected: int, actual: int):
        super().__init__(
            f"Position {position_id} is at version {actual}, expected {expected}. "
            f"Reload the position and resubmit."
        )
        self.position_id = position_id
        self.expected = expected
        self.actual = actual


class PositionNotFoundError(TrackerError):
    """No position with the given id."""

    pass


class PriceLookupError(TrackerError):
    """Price could not be obtained for a ticker."""

    pass


class AggregateFailure(TrackerError):
    """A dashboard sub-computation failed, so the whole report failed."""

    pass


class StaleDataWarning(UserWarning):
    """A price fell back to a cached or missing value."""

    pass
