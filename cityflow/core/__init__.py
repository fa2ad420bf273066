"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from cityflow.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    DuplicateResourceException,
    ConfigurationException,
    UnroutableTicketException,
    ExternalServiceException,
    ObjectStorageException,
    NotificationException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "DuplicateResourceException",
    "ConfigurationException",
    "UnroutableTicketException",
    "ExternalServiceException",
    "ObjectStorageException",
    "NotificationException",
]
