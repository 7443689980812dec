"""Error taxonomy shared by services and the HTTP layer."""


class ApiError(Exception):
    """Base error rendered by the exception handler in ``main.py``."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidToken(ApiError):
    """Activation, reset or session token not found or expired."""

    status_code = 400
    default_message = "This account is either active or the token is invalid"


class AuthenticationFailed(ApiError):
    status_code = 401
    default_message = "Incorrect credentials"


class Forbidden(ApiError):
    status_code = 403
    default_message = "You are not authorized to perform this action"


class NotFound(ApiError):
    status_code = 404
    default_message = "User not found"


class ValidationFailure(ApiError):
    """Malformed caller input. ``validation_errors`` maps field name to message."""

    status_code = 400
    default_message = "Validation Failure"

    def __init__(self, validation_errors: dict[str, str], message: str | None = None) -> None:
        super().__init__(message)
        self.validation_errors = validation_errors


class EmailDeliveryFailed(ApiError):
    status_code = 502
    default_message = "Email failure"


def collect_validation_errors(errors: list[dict]) -> dict[str, str]:
    """Flatten pydantic error dicts into ``{field: message}``, first message per field."""
    validation_errors: dict[str, str] = {}
    for error in errors:
        loc = error.get("loc") or ()
        field = str(loc[-1]) if loc else "body"
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        validation_errors.setdefault(field, message)
    return validation_errors
