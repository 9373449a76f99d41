"""Client-side error taxonomy rendered as JSend ``fail`` responses."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

NO_ERROR_DETAILS = "No error details provided"


def client_error_payload(error: str, details: str = "", action: str = "") -> Dict[str, str]:
    """Build the ``data`` object of a fail response.

    ``error`` is always present; ``details`` and ``action`` are only included
    when they carry text.
    """

    payload = {"error": error or NO_ERROR_DETAILS}
    if details:
        payload["details"] = details
    if action:
        payload["action"] = action
    return payload


class ClientError(Exception):
    """Base class for errors caused by the request rather than the server."""

    status_code = 400
    error = ""
    details = ""
    action = ""
    headers: Optional[Mapping[str, str]] = None

    def __init__(self, error: Optional[str] = None, *, details: Optional[str] = None,
                 action: Optional[str] = None) -> None:
        if error is not None:
            self.error = error
        if details is not None:
            self.details = details
        if action is not None:
            self.action = action
        super().__init__(self.error or NO_ERROR_DETAILS)

    @property
    def data(self) -> Any:
        return client_error_payload(self.error, self.details, self.action)


class BadRequestError(ClientError):
    status_code = 400


class NotFoundError(ClientError):
    status_code = 404
    error = "The requested resource could not be found"


class MethodNotAllowedError(ClientError):
    status_code = 405
    action = "Check the Allow header of an OPTIONS request for a list of accepted methods"

    def __init__(self, method: str) -> None:
        super().__init__(f"The {method} method is not supported for this resource")


class EditConflictError(ClientError):
    status_code = 409
    error = "Unable to update the record due to an edit conflict"
    action = "Please try again"


class FailedValidationError(ClientError):
    """Carries a field name to message map as the whole fail payload."""

    status_code = 422

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("failed validation")

    @property
    def data(self) -> Any:
        return self.errors


class RateLimitExceededError(ClientError):
    status_code = 429
    error = "Rate limit exceeded"
    details = "Large numbers of requests from the same IP address are limited over time"
    action = "Wait a while and then try again, or send fewer requests"


class InvalidCredentialsError(ClientError):
    status_code = 401
    error = "Invalid authentication credentials"
    action = "Check the credentials provided and that an account definitely exists"


class InvalidAuthenticationTokenError(ClientError):
    status_code = 401
    error = "Invalid or missing authentication token"
    action = "Check the token provided or request a new one and try again"
    headers = {"WWW-Authenticate": "Bearer"}


class AuthenticationRequiredError(ClientError):
    status_code = 401
    error = "You must be authenticated to access this resource"
    action = "Authenticate yourself, then try again with the provided credentials"


class InactiveAccountError(ClientError):
    status_code = 403
    error = "Your user account must be activated to access this resource"
    action = "Activate your account and then try again"


class NotPermittedError(ClientError):
    status_code = 403
    error = "Your user account does not have the necessary permissions to access this resource"
