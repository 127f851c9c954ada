from typing import Optional


class GatewayError(Exception):
    """
    Base for every failure surfaced by the remote data gateway.

    ``detail`` is the backend-supplied message, if any; ``message`` falls back
    to a generic text for the failure class.
    """

    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.detail = message
        self.message = message or self.default_message
        self.status_code = status_code
        super().__init__(self.message)


class AuthFailure(GatewayError):
    default_message = "Authentication failed"


class ValidationFailure(GatewayError):
    default_message = "Invalid request"


class NotFound(GatewayError):
    default_message = "Not found"


class TransientFetchFailure(GatewayError):
    default_message = "Backend unavailable"


def error_for_status(status_code: int, message: Optional[str] = None) -> GatewayError:
    if status_code in (401, 403):
        return AuthFailure(message, status_code)
    if status_code == 404:
        return NotFound(message, status_code)
    if status_code in (400, 409, 422):
        return ValidationFailure(message, status_code)
    return TransientFetchFailure(message, status_code)
