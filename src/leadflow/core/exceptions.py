from __future__ import annotations

from typing import Any


class LeadflowError(Exception):
    """Base exception for all leadflow errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"LEAD_NOT_FOUND"``).
        details: Arbitrary key/value context about the error.
        status_code: HTTP-style status code a request layer should map the
            error to. Each subclass carries its own default.
    """

    default_status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )


class ValidationError(LeadflowError):
    """Malformed input or a permission failure the caller can correct."""

    default_status_code = 400

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
        self.errors = errors or []


class NotFoundError(LeadflowError):
    """A referenced workflow, execution, lead, user, rule or approval is absent."""

    default_status_code = 404


class BusinessLogicError(LeadflowError):
    """The input is valid but no legal outcome exists."""

    default_status_code = 422


class WorkflowError(LeadflowError):
    """Illegal workflow execution state transition."""

    default_status_code = 409


class ConfigurationError(LeadflowError): ...
