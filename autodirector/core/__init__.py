"""Core package - Configuration, logging, exceptions.

This package provides foundational infrastructure used by all other layers.

Modules:
    - config: Environment and configuration management
    - logging: Structured JSON logging
    - exceptions: Custom exception hierarchy
    - services: Capability availability registry
    - tasks: Background asyncio task management
"""

from autodirector.core.exceptions import (
    AutoDirectorError,
    CapabilityUnavailable,
    ConfigurationError,
    IntegrationError,
    StepFault,
    StoreError,
    ValidationError,
)

__all__ = [
    "AutoDirectorError",
    "ConfigurationError",
    "ValidationError",
    "StoreError",
    "IntegrationError",
    "StepFault",
    "CapabilityUnavailable",
]
