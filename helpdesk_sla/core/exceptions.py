"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries, where each one is mapped to an
HTTP status code.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    status_code = 400


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(DomainException):
    """Exception for malformed input shapes."""


class AuthenticationException(ApplicationException):
    """Raised when the request carries no user or tenant."""

    status_code = 401


class PermissionDeniedException(ApplicationException):
    """Raised when the caller's role does not allow the operation."""

    status_code = 403


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    status_code = 404

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


class ConfigConflictException(DomainException):
    """An active SLA config already exists for the tenant/priority/category triple."""

    status_code = 409

    def __init__(
        self,
        priority: str,
        category_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.priority = priority
        self.category_id = category_id
        message = f"SLA configuration already exists for priority {priority}"
        if category_id:
            message += f" and category {category_id}"
        super().__init__(
            message,
            details or {"priority": priority, "category_id": category_id}
        )


class NoApplicableConfigException(DomainException):
    """No active SLA config matches the ticket's priority and category."""

    status_code = 422

    def __init__(
        self,
        priority: str,
        category_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.priority = priority
        self.category_id = category_id
        message = f"No SLA configuration found for priority {priority}"
        if category_id:
            message += f" and category {category_id}"
        super().__init__(
            message,
            details or {"priority": priority, "category_id": category_id}
        )


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)
