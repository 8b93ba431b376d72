"""
Application exceptions.

Services raise these; the REST layer renders them through one exception
handler and the live channel turns them into an `error` event for the
originating connection only.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base application exception.
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        status_code: int = 400,
        extra: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            error_code: machine readable identifier, stable across releases
            message: user facing message
            status_code: HTTP status code
            extra: additional fields merged into the response body
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}

        super().__init__(message)

    def to_dict(self) -> dict:
        response = {
            "success": False,
            "message": self.message,
            "error": self.error_code,
        }
        response.update(self.extra)
        return response


# --------------------------------------------
# Specific exception types
# --------------------------------------------

class ValidationException(AppException):
    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, 400, extra)


class NotFoundException(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__("NOT_FOUND", message, 404)


class ForbiddenException(AppException):
    def __init__(
        self,
        message: str = "Access denied",
        error_code: str = "FORBIDDEN",
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(error_code, message, 403, extra)


class UnauthorizedException(AppException):
    def __init__(self, message: str = "Authentication required."):
        super().__init__("UNAUTHORIZED", message, 401)


class ConflictException(AppException):
    def __init__(self, message: str):
        super().__init__("CONFLICT", message, 409)


class InternalServerException(AppException):
    """
    Raised for storage or unexpected failures. The message is fixed so
    internals never reach the client.
    """

    def __init__(self):
        super().__init__(
            "INTERNAL_SERVER_ERROR",
            "Something went wrong. Please try again later.",
            500,
        )


class ChatLockedException(ForbiddenException):
    """
    The conversation is tied to an appointment that does not (yet) allow
    chatting. Carries the appointment status so clients can explain why.
    """

    def __init__(self, appointment_status: str):
        super().__init__(
            message="Chat is only available after the appointment is confirmed by the lawyer",
            error_code="APPOINTMENT_NOT_CONFIRMED",
            extra={"appointmentStatus": appointment_status},
        )
        self.appointment_status = appointment_status
