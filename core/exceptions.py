"""
Custom exceptions for the module publishing pipeline with structured error context.

Every failure the pipeline can report to a caller is a subclass of
``ModuleServiceError``. Each class carries a stable ``error_code`` and the
HTTP status the API layer maps it to, so services raise typed errors and
presentation code never sees a bare exception.

Exception Hierarchy:
    ModuleServiceError (base)
    ├── ValidationError
    │   └── SettingsValidationError
    ├── NotFoundError
    ├── ConflictError
    ├── AuthorizationError
    ├── RenderError
    │   ├── TranspileError
    │   ├── UnsafeCodeError
    │   └── MountTimeoutError
    └── PersistenceError
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ModuleServiceError(Exception):
    """
    Base exception for all module pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (module id, site id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    error_code = "MODULE_SERVICE_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Expected failures (returned to callers as typed errors)
# ============================================================================

class ValidationError(ModuleServiceError):
    """
    Raised when a precondition is not met.

    Context should include:
        - module_source_id / module_id: The module the operation targeted
        - errors: List of individual validation problems (if several)
    """

    error_code = "VALIDATION_ERROR"
    http_status = 422


class SettingsValidationError(ValidationError):
    """
    Raised when settings do not satisfy a module's settings schema.

    Context should include:
        - field_errors: Mapping of field name -> problem
    """

    error_code = "SETTINGS_INVALID"


class NotFoundError(ModuleServiceError):
    """Raised when a module, source, installation or version does not exist."""

    error_code = "NOT_FOUND"
    http_status = 404


class ConflictError(ModuleServiceError):
    """
    Raised when a uniqueness invariant would be violated.

    Context should include:
        - constraint: The violated key, e.g. "site_id,module_id"
    """

    error_code = "CONFLICT"
    http_status = 409


class AuthorizationError(ModuleServiceError):
    """Raised when the caller or the tenant's entitlement does not allow the action."""

    error_code = "NOT_AUTHORIZED"
    http_status = 403


# ============================================================================
# Render errors (always contained at the sandbox boundary)
# ============================================================================

class RenderError(ModuleServiceError):
    """Base exception for module code that cannot be prepared or mounted."""

    error_code = "RENDER_FAILED"
    http_status = 500


class TranspileError(RenderError):
    """Module code falls outside the supported source subset."""

    error_code = "TRANSPILE_FAILED"


class UnsafeCodeError(RenderError):
    """
    Module code references host APIs that sandboxed modules may not use.

    Context should include:
        - findings: List of forbidden patterns with line numbers
    """

    error_code = "UNSAFE_CODE"


class MountTimeoutError(RenderError):
    """Module did not finish mounting inside the bounded wait."""

    error_code = "MOUNT_TIMEOUT"


# ============================================================================
# Storage errors
# ============================================================================

class PersistenceError(ModuleServiceError):
    """
    Raised when a storage write fails.

    Context should include:
        - operation: INSERT, UPDATE, DELETE
        - table_name: Name of the table
    """

    error_code = "PERSISTENCE_ERROR"
    http_status = 500
