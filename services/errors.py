"""
Error types raised by the booking engine.

Each carries the HTTP status code the API answers with; ``create_app``
renders them as ``{"error": message}``.
"""


class BookingEngineError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(BookingEngineError):
    status_code = 400


class NotFoundError(BookingEngineError):
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ForbiddenError(BookingEngineError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class ConflictError(BookingEngineError):
    """The requested slot overlaps a held booking."""

    status_code = 409

    def __init__(self, message: str = "Slot no longer available"):
        super().__init__(message)


class PaymentProviderError(BookingEngineError):
    status_code = 502


class InsufficientFundsError(BookingEngineError):
    status_code = 402

    def __init__(self, message: str = "Insufficient wallet balance"):
        super().__init__(message)


class ReconciliationMismatch(BookingEngineError):
    """Provider event that matches no known payment. Logged, never returned."""

    status_code = 200
