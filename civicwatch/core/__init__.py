"""
Core Module
============

Shared core abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from civicwatch.core.exceptions import (
    ApplicationException,
    DomainException,
    InvalidTransitionException,
    AuthorizationException,
    RepositoryException,
    StoreBackpressureException,
    ConcurrencyConflictException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "InvalidTransitionException",
    "AuthorizationException",
    "RepositoryException",
    "StoreBackpressureException",
    "ConcurrencyConflictException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
]
