"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a stable machine-readable ``code`` and a human message.
The HTTP status lives on the class so the exception handlers in ``main`` can
render any of them without a lookup table.
"""

from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"
    message = "Internal server error."

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    message = "Invalid input."


class WeakPassword(ValidationError):
    code = "weak_password"
    message = "Password must be at least 8 characters."


class InvalidRange(ValidationError):
    code = "invalid_range"
    message = "endsAt must be after startsAt."


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    message = "Authentication required."


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    message = "Invalid credentials."


class InvalidRefreshToken(AuthenticationError):
    code = "invalid_refresh_token"
    message = "Invalid refresh token."


class RefreshTokenExpired(AuthenticationError):
    code = "refresh_token_expired"
    message = "Refresh token expired."


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Forbidden."


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Not found."


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    message = "Conflict."


class DuplicateEmail(ConflictError):
    code = "duplicate_email"
    message = "Email already in use."


class InstructorConflict(ConflictError):
    code = "instructor_conflict"
    message = "Instructor is already booked for that time."


class VehicleConflict(ConflictError):
    code = "vehicle_conflict"
    message = "Vehicle is already booked for that time."


class InternalError(AppError):
    pass
