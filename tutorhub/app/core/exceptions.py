"""
Domain exceptions for the TutorHub backend.

Services raise these; the handlers registered in ``main.py`` turn them into
``{"error": message}`` JSON responses with the matching status code.
"""

from fastapi import status


class DomainError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UnauthorizedError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(DomainError):
    """A status or timing precondition does not hold."""

    status_code = status.HTTP_400_BAD_REQUEST


class PaymentProcessorError(DomainError):
    """The payment processor call failed; the message is safe to show clients."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class WebhookSignatureError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConcurrentModificationError(InvalidStateError):
    """A guarded status write lost the race against another committed write."""


class WebhookRetryError(DomainError):
    """The event cannot be applied yet; a non-2xx makes the processor redeliver it."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
