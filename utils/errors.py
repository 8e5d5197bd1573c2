class ApiError(Exception):
    """Expected failure that maps onto a JSON error response."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None, details=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ApiError):
    status_code = 400
    message = "Invalid request body"


class InvalidCredentials(ApiError):
    # same text for unknown email, wrong password and wrong second factor
    status_code = 401
    message = "Invalid credentials"


class Unauthenticated(ApiError):
    status_code = 401
    message = "Authentication required"


class SessionExpired(ApiError):
    status_code = 401
    message = "Session expired"


class Forbidden(ApiError):
    status_code = 403
    message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    message = "Not found"


class Conflict(ApiError):
    status_code = 409
    message = "Conflict"


class UserExists(Conflict):
    message = "User already exists"


class AlreadyEnabled(Conflict):
    status_code = 400
    message = "2FA is already enabled"


class InvalidCode(ApiError):
    status_code = 400
    message = "Invalid verification code"


class InvalidToken(Exception):
    """Bearer token failed signature, format or expiry checks."""
