"""
Core utilities and configuration for the module publishing service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database connection and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import get_session
    from core.exceptions import ConflictError, NotFoundError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async for session in get_session():
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "get_session",
    "setup_logging",
    # Exceptions
    "ModuleServiceError",
    "ValidationError",
    "SettingsValidationError",
    "NotFoundError",
    "ConflictError",
    "AuthorizationError",
    "RenderError",
    "TranspileError",
    "UnsafeCodeError",
    "MountTimeoutError",
    "PersistenceError",
]
