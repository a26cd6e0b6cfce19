"""Exceptions raised by the booking workflow and the backend client."""
from __future__ import annotations


class DoctoraError(Exception):
    """Base class for every error raised by this package."""


class BackendError(DoctoraError):
    """The backend answered, but not with a 2xx JSON payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConnectivityError(BackendError):
    """Backend unreachable, timed out, or returned something that is not JSON."""


class ConfigurationError(ConnectivityError):
    """An HTML page came back where JSON was expected.

    Usually means the base URL points at a web frontend instead of the API.
    """


class AuthenticationError(BackendError):
    """Missing bearer token, or the backend rejected it (401/403)."""


class FlowViolation(DoctoraError):
    """A booking step was entered before the steps it depends on."""

    def __init__(self, step: str, missing: list[str], redirect_to: str):
        super().__init__(f"cannot enter {step}: missing {', '.join(missing)}")
        self.step = step
        self.missing = missing
        self.redirect_to = redirect_to


class ReceiptError(DoctoraError):
    """Neither the visual nor the text receipt could be produced."""


class NoDoctorAvailable(DoctoraError):
    """Automatic assignment found nobody free in the department on that date."""
