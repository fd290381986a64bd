"""
Core Exceptions
================

Custom exceptions shared by every bounded context.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries (HTTP layer, watchdog loop).
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class InvalidTransitionException(DomainException):
    """Raised when a status change is not allowed by the escalation state machine."""

    def __init__(self, current_status: str, target_status: str, reason: str = ""):
        self.current_status = current_status
        self.target_status = target_status
        message = f"Cannot move complaint from '{current_status}' to '{target_status}'"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            {"current_status": current_status, "target_status": target_status}
        )


class AuthorizationException(DomainException):
    """Raised when an official acts on a complaint assigned to someone else."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class StoreBackpressureException(RepositoryException):
    """The record store refused work (quota, lock timeout, pool exhaustion)."""


class ConcurrencyConflictException(RepositoryException):
    """A conditional update matched no row because the record changed underneath."""

    def __init__(self, complaint_id: str, expected_version: int):
        self.complaint_id = complaint_id
        self.expected_version = expected_version
        super().__init__(
            f"Complaint {complaint_id} changed since version {expected_version}",
            {"complaint_id": complaint_id, "expected_version": expected_version}
        )


class ValidationException(ApplicationException):
    """Exception for validation errors."""


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


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for classification / advisory model failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)
