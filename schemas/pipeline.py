"""
Pydantic schemas for sync and deployment results
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID
import enum

from models.base import DeploymentEnvironment, DeploymentStatus


class SyncAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class SyncResult(BaseModel):
    """Outcome of reconciling one module source with its catalog projection"""
    action: SyncAction
    module_source_id: UUID
    marketplace_module_id: Optional[UUID] = None
    slug: Optional[str] = None
    changed: bool = False
    changed_fields: List[str] = Field(default_factory=list)
    message: Optional[str] = None

    class Config:
        use_enum_values = True


class SyncSummary(BaseModel):
    """Aggregate of one sync_all batch"""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    results: List[SyncResult] = Field(default_factory=list)
    error_details: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.errors


class DeploymentResult(BaseModel):
    """
    Outcome of a deployment.

    ``success`` reflects the version snapshot and status transition only;
    a failed catalog sync shows up in ``warnings``.
    """
    success: bool
    deployment_id: Optional[UUID] = None
    version_id: Optional[UUID] = None
    version: Optional[str] = None
    environment: Optional[DeploymentEnvironment] = None
    status: Optional[str] = None
    sync: Optional[SyncResult] = None
    warnings: List[str] = Field(default_factory=list)

    class Config:
        use_enum_values = True


class UnpublishResult(BaseModel):
    module_source_id: UUID
    status: str
    sync: Optional[SyncResult] = None
    warnings: List[str] = Field(default_factory=list)


class DeploymentInfo(BaseModel):
    """Deployment audit row for history listings"""
    id: UUID
    module_source_id: UUID
    version_id: UUID
    version: Optional[str] = None
    environment: DeploymentEnvironment
    status: DeploymentStatus
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class RollbackResult(BaseModel):
    deployment_id: UUID
    restored_version: Optional[str] = None
    status: str
    warnings: List[str] = Field(default_factory=list)
