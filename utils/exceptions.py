"""
Custom exception classes for the booking engine.
Every failed operation raises one of these; the class is the failure tag.
"""


class BookingEngineError(Exception):
    """Base exception for all booking engine failures."""

    pass


class InvalidTransition(BookingEngineError):
    """Raised when a state change is not permitted from the current state."""

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status


class ConflictError(BookingEngineError):
    """Raised when a conditional write lost a race to a concurrent mutation.

    Safe to retry after re-reading the current state.
    """

    pass


class CompanionBusyError(ConflictError):
    """Raised when booking a companion who is engaged in another booking."""

    pass


class ChatNotAvailable(BookingEngineError):
    """Raised when messaging outside of a chat session's active window."""

    def __init__(self, message: str, chat_status: str | None = None):
        super().__init__(message)
        self.chat_status = chat_status


class DuplicateRelation(BookingEngineError):
    """Raised when a unique relation (e.g. a block) already exists."""

    pass


class ValidationError(BookingEngineError):
    """Raised when input validation fails."""

    pass


class PermissionDeniedError(BookingEngineError):
    """Raised when the acting party may not perform the operation."""

    pass


class UpstreamUnavailable(BookingEngineError):
    """Raised when the store fails or times out. Retryable by the caller."""

    pass


class NotFoundError(BookingEngineError):
    """Base exception for missing entities."""

    pass


class BookingNotFoundError(NotFoundError):
    """Raised when a booking is not found."""

    pass


class PaymentRequestNotFoundError(NotFoundError):
    """Raised when a payment request is not found."""

    pass


class ChatNotFoundError(NotFoundError):
    """Raised when a chat session is not found."""

    pass


class NotificationNotFoundError(NotFoundError):
    """Raised when a notification is not found for its recipient."""

    pass
