"""Failure taxonomy shared by the services and the HTTP layer."""
from enum import Enum


class AuthErrorKind(str, Enum):
    """Closed set of identity failures surfaced by the identity service."""

    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_CONFIRMED = "email_not_confirmed"
    ALREADY_REGISTERED = "already_registered"
    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    MISSING_FIELDS = "missing_fields"
    INVALID_TOKEN = "invalid_token"
    NOT_AUTHENTICATED = "not_authenticated"


AUTH_ERROR_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    AuthErrorKind.EMAIL_NOT_CONFIRMED: "Please check your email and confirm your account before signing in",
    AuthErrorKind.ALREADY_REGISTERED: "An account with this email already exists",
    AuthErrorKind.INVALID_EMAIL: "Please enter a valid email address",
    AuthErrorKind.WEAK_PASSWORD: "Password must be at least 6 characters",
    AuthErrorKind.MISSING_FIELDS: "Please fill in all fields",
    AuthErrorKind.INVALID_TOKEN: "This link is invalid or has expired",
    AuthErrorKind.NOT_AUTHENTICATED: "Please sign in to continue",
}


class HotelError(Exception):
    """Base exception for all Haven Hotel errors."""

    tag = "error"
    status_code = 500
    default_message = "Something went wrong. Please try again."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        """Tagged failure result returned to the immediate caller."""
        return {
            'success': False,
            'error': self.tag,
            'message': self.message,
        }


class AuthenticationError(HotelError):
    """Raised when the identity service rejects a request."""

    tag = "authentication"
    status_code = 401

    def __init__(self, kind, message=None):
        self.kind = AuthErrorKind(kind)
        super().__init__(message or AUTH_ERROR_MESSAGES[self.kind])

    def to_dict(self):
        data = super().to_dict()
        data['kind'] = self.kind.value
        return data


class AuthorizationError(HotelError):
    """Raised when a valid session lacks the required role."""

    tag = "authorization"
    status_code = 403
    default_message = "You do not have admin access"


class NotFoundError(HotelError):
    """Raised when a user, room or booking does not exist or is not visible."""

    tag = "not_found"
    status_code = 404
    default_message = "Not found"


class StoreError(HotelError):
    """Raised when the data store fails (network or server error)."""

    tag = "store_unavailable"
    status_code = 503
    default_message = "The service is temporarily unavailable. Please try again."


class ValidationError(HotelError):
    """Raised when input is incomplete or out of range."""

    tag = "validation"
    status_code = 400
    default_message = "Invalid request"
