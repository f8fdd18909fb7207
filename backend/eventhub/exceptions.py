"""Domain errors raised by the service layer.

Every error carries an HTTP status code and a machine-readable `reason` so
the API layer can map it without inspecting the message. RSVP rejections are
kept as separate types: "already joined", "event is full" and "event already
happened" must never collapse into one answer.
"""


class DomainError(Exception):
    status_code = 400
    reason = "bad_request"
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainError):
    status_code = 404
    reason = "not_found"
    default_message = "Resource not found"


class EventNotFound(NotFoundError):
    reason = "event_not_found"
    default_message = "Event not found"


class UserNotFound(NotFoundError):
    reason = "user_not_found"
    default_message = "User not found"


class ForbiddenError(DomainError):
    status_code = 403
    reason = "forbidden"
    default_message = "Only the creator may modify this event"


class ConflictError(DomainError):
    status_code = 409
    reason = "conflict"
    default_message = "Conflicting update"


class VersionConflict(ConflictError):
    reason = "version_conflict"
    default_message = "Event was modified concurrently. Re-fetch and retry."


class CapacityBelowAttendance(ConflictError):
    reason = "capacity_below_attendance"
    default_message = "Capacity cannot be lower than the number of attendees"


class EmailTaken(ConflictError):
    reason = "email_taken"
    default_message = "Email already registered"


# --- RSVP rejections -------------------------------------------------------

class EventExpired(DomainError):
    reason = "event_expired"
    default_message = "Cannot RSVP to past events"


class AlreadyJoined(ConflictError):
    reason = "already_joined"
    default_message = "You have already RSVP'd to this event"


class NotJoined(ConflictError):
    reason = "not_joined"
    default_message = "You have not RSVP'd to this event"


class CapacityExceeded(ConflictError):
    reason = "capacity_exceeded"
    default_message = "Event is at full capacity"


class AdmissionConflict(ConflictError):
    reason = "admission_conflict"
    default_message = "Unable to RSVP. Please try again."


# --- Internal failures ------------------------------------------------------

class InvariantViolation(DomainError):
    status_code = 500
    reason = "invariant_violation"
    default_message = "Event capacity invariant violated"


class StoreUnavailable(DomainError):
    status_code = 503
    reason = "store_unavailable"
    default_message = "Event store is temporarily unavailable"
