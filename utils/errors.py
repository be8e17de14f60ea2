"""
Error types raised by the service layer.

Each error knows the HTTP status it maps to; the app factory registers a
handler that renders them as the standard JSON envelope.
"""


class SubscriptionError(Exception):
    """Base class for every expected failure of a subscription operation."""
    status_code = 500

    def __init__(self, message, details=None, original_error=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self):
        """Convert exception to the response envelope."""
        body = {
            'success': False,
            'error': self.__class__.__name__,
            'message': self.message,
            'data': None,
        }
        if self.details:
            body['details'] = self.details
        return body


class ValidationError(SubscriptionError):
    """Malformed or out-of-range input."""
    status_code = 400


class UnauthorizedError(SubscriptionError):
    """Missing or invalid actor identity."""
    status_code = 401


class ForbiddenError(SubscriptionError):
    status_code = 403


class NotFoundError(SubscriptionError):
    """Package, subscription, payment or user missing."""
    status_code = 404


class ConflictError(SubscriptionError):
    """Duplicate pending/active subscription or duplicate catalog entry."""
    status_code = 409


class InternalError(SubscriptionError):
    """Storage or lookup failure."""
    status_code = 500
