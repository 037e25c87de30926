# auth_service/errors.py
"""
Typed failures raised by the auth and task layers.

Each error carries the HTTP status it maps to; the application's exception
handlers turn them into ``{"status": ..., "message": ...}`` bodies.
"""
from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message=None, status_code=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    @property
    def status(self):
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, errors, message=None):
        self.errors = list(errors)
        super().__init__(message)


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized, no token"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid email or password"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You don't have permission to perform this action"


class InvalidToken(Forbidden):
    default_message = "Invalid token"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User already exists"


class DuplicateTitle(Conflict):
    default_message = "Duplicate task title"


class InvalidOrExpiredToken(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Token is invalid or has expired"


class ResetDeliveryFailed(AppError):
    default_message = "There was an error sending the email. Try again later!"


class StoreUnavailable(AppError):
    default_message = "Something went wrong"
