"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from caseflow.core.exceptions import (
    ApplicationException,
    DomainException,
    ValidationException,
    ResourceNotFoundException,
    PermissionDeniedException,
    StaleDataException,
    ConfigurationException,
    ExternalServiceException,
    TransientFetchException,
    BackingApiException,
)
from caseflow.core.access import Actor, require_role
from caseflow.core.validation import format_errors, parse_model

__all__ = [
    "ApplicationException",
    "DomainException",
    "ValidationException",
    "ResourceNotFoundException",
    "PermissionDeniedException",
    "StaleDataException",
    "ConfigurationException",
    "ExternalServiceException",
    "TransientFetchException",
    "BackingApiException",
    "Actor",
    "require_role",
    "format_errors",
    "parse_model",
]
