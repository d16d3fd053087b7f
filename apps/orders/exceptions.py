# apps/orders/exceptions.py
from rest_framework import status

from apps.utils.exceptions import BusinessLogicException


class InvalidStatus(BusinessLogicException):
    default_code = "invalid_status"

    def __init__(self, value, accepted):
        super().__init__(
            f"Invalid status value: {value!r}",
            details={"allowed_values": list(accepted)},
        )


class NoOpTransition(BusinessLogicException):
    default_code = "status_unchanged"

    def __init__(self, current):
        super().__init__("Status is unchanged", details={"current_status": current})


class InvalidAssignment(BusinessLogicException):
    default_code = "invalid_assignment"


class OrderNotFound(BusinessLogicException):
    default_code = "order_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found", details={"order_id": order_id})


class Forbidden(BusinessLogicException):
    default_code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class VerificationFailed(BusinessLogicException):
    default_code = "verification_failed"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message="Customer name or phone number does not match this order"):
        super().__init__(message)


class AlreadyTerminal(BusinessLogicException):
    default_code = "already_terminal"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current):
        super().__init__(
            f"Order is already {current}",
            details={"current_status": current},
        )


class PersistenceError(BusinessLogicException):
    default_code = "persistence_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
