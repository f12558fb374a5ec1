"""Domain exception hierarchy for structured error responses."""

from __future__ import annotations


class AppException(Exception):
    """Base exception for all domain errors.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenException(AppException):
    code = "FORBIDDEN"
    status_code = 403


class UnauthorizedException(AppException):
    code = "UNAUTHORIZED"
    status_code = 401


# ---------------------------------------------------------------------------
# Isolation layer: these never reach an HTTP response
# ---------------------------------------------------------------------------


class TenancyError(Exception):
    """Base class for tenant-isolation failures outside the request path."""


class PolicyModelError(TenancyError):
    """The static policy model is malformed (bad chain, duplicate table, ...)."""


class PolicyInstallError(TenancyError):
    """A predicate could not be attached. The process must not serve traffic."""


class ContextStateError(TenancyError):
    """An invalid transition of the per-connection context state machine."""
