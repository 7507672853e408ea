"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import List, Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class ValidationException(ApplicationException):
    """Malformed input, rejected before any request leaves the client."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        details: Optional[dict] = None
    ):
        self.errors = errors or [message]
        super().__init__(message, details or {"errors": self.errors})


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class PermissionDeniedException(ApplicationException):
    """Caller attempted a role-gated operation."""

    DENIAL_MESSAGE = "You do not have permission to perform this action"

    def __init__(self, action: str, role: Optional[str] = None):
        self.action = action
        self.role = role
        super().__init__(self.DENIAL_MESSAGE, {"action": action, "role": role})


class StaleDataException(DomainException):
    """Fresh data was required but only a stale copy is available."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Only stale data is available for '{key}'", {"key": key})


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    retryable = False

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class TransientFetchException(ExternalServiceException):
    """Backing source unreachable or erroring; the request may be retried."""

    retryable = True

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Backing API", message, details)


class BackingApiException(ExternalServiceException):
    """Backing API rejected the request (4xx or an unsuccessful envelope)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None
    ):
        self.status_code = status_code
        super().__init__("Backing API", message, details)
