from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Status is unchanged').

    Subclasses pin the `code` and `status_code`; `details` is merged into
    the error payload so the client can correct the request.
    """
    default_code = "business_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code=None, details=None):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def as_payload(self):
        payload = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


def custom_exception_handler(exc, context):
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if isinstance(exc, BusinessLogicException):
        if exc.status_code >= 500:
            logger.error(f"Server fault: {exc.message}", exc_info=True)
        return Response(exc.as_payload(), status=exc.status_code)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response
