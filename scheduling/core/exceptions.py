"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ValidationException(AppException):
    """Validation error exception."""

    code = "validation_error"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


# Scheduling failure kinds. Messages are fixed so that no identifiers,
# tenant details or storage errors ever reach the caller.


class SchedulingError(AppException):
    """Base class for every failure the scheduling service reports."""

    default_message = "Scheduling request failed"
    default_status = 400
    # Benign failures describe a state the caller already asked for
    benign = False

    def __init__(self, message: str | None = None):
        """Initialize with the kind's fixed message and status code."""
        super().__init__(message or self.default_message, status_code=self.default_status)


class InvalidRangeError(SchedulingError):
    """End of the requested range is not after its start."""

    code = "invalid_range"
    default_message = "End time must be after start time"
    default_status = 422


class OverlapError(SchedulingError):
    """The clinician already has a scheduled appointment in that range."""

    code = "overlap"
    default_message = "The clinician already has an appointment at that time"
    default_status = 409


class PastAppointmentError(SchedulingError):
    """The appointment has already started and can no longer be changed."""

    code = "past_appointment"
    default_message = "Appointments that have already started cannot be changed"
    default_status = 409


class AppointmentNotFoundError(SchedulingError):
    """Appointment is missing, canceled, or owned by another tenant."""

    code = "not_found"
    default_message = "Appointment not found"
    default_status = 404


class AlreadyCanceledError(SchedulingError):
    """Appointment was canceled before this request."""

    code = "already_canceled"
    default_message = "Appointment is already canceled"
    default_status = 409
    benign = True


class InternalSchedulingError(SchedulingError):
    """Storage or infrastructure failure."""

    code = "internal"
    default_message = "The request could not be completed"
    default_status = 500


class OutcomeUnknownError(SchedulingError):
    """The deadline expired while the write may still have been applied."""

    code = "outcome_unknown"
    default_message = "The request timed out; the change may or may not have been applied"
    default_status = 504


# Repository signals


class RepositoryError(Exception):
    """Storage failure that is not an exclusion violation."""


class SlotConflictError(RepositoryError):
    """
    Storage rejected a write because it would overlap another scheduled
    appointment of the same clinician in the same tenant.
    """

    def __init__(self, constraint: str | None = None):
        """Record the name of the constraint that fired, when known."""
        self.constraint = constraint
        super().__init__(f"exclusion constraint violated: {constraint or 'unknown'}")
