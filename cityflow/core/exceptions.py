"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
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


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


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


class DuplicateResourceException(ApplicationException):
    """Exception when a unique value is already taken."""

    def __init__(
        self,
        resource_type: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class UnroutableTicketException(DomainException):
    """Raised when a ticket's city cannot be routed to a region."""

    def __init__(self, city: str, details: Optional[dict] = None):
        self.city = city
        super().__init__(
            "This city needs to be mapped to a region first",
            details or {"city": city}
        )


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


class ObjectStorageException(ExternalServiceException):
    """Exception for attachment storage failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Object Storage", message, details)


class NotificationException(ExternalServiceException):
    """Exception for escalation webhook failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Escalation Webhook", message, details)
