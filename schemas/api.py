"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from models.base import DeploymentEnvironment, RenderStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    catalog_modules_active: int = 0
    catalog_modules_inactive: int = 0
    render_failures: int = 0
    render_successes: int = 0
    # Declared last so the validator sees the counts above
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        failures = values.get("render_failures", 0)
        successes = values.get("render_successes", 0)

        if failures == 0:
            return "healthy"
        elif successes > 0:
            return "degraded"
        else:
            return "unhealthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "catalog_modules_active": 12,
                "catalog_modules_inactive": 1,
                "render_failures": 0,
                "render_successes": 340
            }
        }


# ============================================================================
# Authoring / admin request bodies
# ============================================================================

class DeployRequest(BaseModel):
    """Body of POST /modules/{source_id}/deploy"""
    changelog: str = Field(..., min_length=1)
    version: Optional[str] = Field(None, description="Explicit semver label; bumped from the published version when omitted")
    environment: DeploymentEnvironment = DeploymentEnvironment.PRODUCTION
    bump: str = Field(default="patch", description="major, minor or patch")

    @validator("bump")
    def validate_bump(cls, v):
        if v.lower() not in ["major", "minor", "patch"]:
            raise ValueError("bump must be 'major', 'minor' or 'patch'")
        return v.lower()

    class Config:
        json_schema_extra = {
            "example": {
                "changelog": "Initial release",
                "version": "1.0.0",
                "environment": "production"
            }
        }


# ============================================================================
# Installation request bodies
# ============================================================================

class InstallRequest(BaseModel):
    module_id: str = Field(..., min_length=1, description="Catalog id, slug or module source id")
    settings: Optional[Dict[str, Any]] = Field(None, description="Overrides merged over the module defaults")


class UpdateSettingsRequest(BaseModel):
    settings: Dict[str, Any]


class SetEnabledRequest(BaseModel):
    is_enabled: bool


# ============================================================================
# Render health
# ============================================================================

class RenderHealthReport(BaseModel):
    """Report posted by the host page after a sandbox posts MODULE_READY / MODULE_ERROR"""
    module_id: str = Field(..., min_length=1)
    status: RenderStatus
    error: Optional[str] = Field(None, max_length=2000)


class RenderHealthEntry(BaseModel):
    module_id: str
    success_count: int
    failure_count: int
    last_status: RenderStatus
    last_error: Optional[str] = None
    last_reported_at: datetime

    class Config:
        from_attributes = True
        use_enum_values = True


class RenderHealthSummary(BaseModel):
    site_id: str
    modules: List[RenderHealthEntry] = Field(default_factory=list)
    total_successes: int = 0
    total_failures: int = 0


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    error_code: str
    detail: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "error": "ConflictError",
                "error_code": "CONFLICT",
                "detail": "Module is already installed on this site",
                "context": {"site_id": "42", "module_id": "loyalty-points"},
                "timestamp": "2024-01-15T10:30:00Z"
            }
        }
