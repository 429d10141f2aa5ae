"""
Domain errors. Raised by services before any state is mutated and mapped to
HTTP responses by the handler registered in showroom.main.
"""


class ShowroomError(Exception):
    """Base class for errors surfaced to the client as {"detail": ...}."""

    status_code = 400

    def __init__(self, detail: str = None):
        super().__init__(detail or self.__doc__)
        self.detail = detail or self.__doc__


class NotFound(ShowroomError):
    """Resource not found."""

    status_code = 404


class AuthenticationError(ShowroomError):
    """Invalid email or password."""

    status_code = 401


class PermissionDenied(ShowroomError):
    """You do not have access to this resource."""

    status_code = 403


class InvalidAmount(ShowroomError):
    """Please enter a valid amount."""


class InsufficientFunds(ShowroomError):
    """Insufficient balance."""


class PaymentMethodDisabled(ShowroomError):
    """This payment method is currently unavailable."""


class ReceiptRequired(ShowroomError):
    """Please select a receipt file to upload."""


class InvalidTransition(ShowroomError):
    """This transaction can no longer be updated this way."""

    status_code = 409


class ServiceUnavailable(ShowroomError):
    """An external service failed. Please try again later."""

    status_code = 502
