from sqlalchemy import Column, String, Enum, DateTime, Text, ForeignKey, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from models.base import Base, JSONType, DeploymentEnvironment, DeploymentStatus


class ModuleVersion(Base):
    """
    Immutable snapshot of a module's render artifacts at deploy time.

    Purpose:
    - Version history for rollback and redeploy
    - Serialises concurrent deploys: (module_source_id, version) is unique,
      so the losing insert fails instead of overwriting
    """
    __tablename__ = "module_versions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    module_source_id = Column(Uuid, ForeignKey("module_source.id"), nullable=False, index=True)

    version = Column(String(50), nullable=False)
    changelog = Column(Text, nullable=True)

    # Snapshot
    render_code = Column(Text, nullable=True)
    settings_schema = Column(JSONType, nullable=True)
    styles = Column(Text, nullable=True)
    default_settings = Column(JSONType, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    deployments = relationship("ModuleDeployment", back_populates="version")

    __table_args__ = (
        UniqueConstraint("module_source_id", "version", name="uq_module_versions_source_version"),
    )


class ModuleDeployment(Base):
    """
    Append-only audit record of one deployment attempt.

    Only status, error_message and completed_at change after insert.
    """
    __tablename__ = "module_deployments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    module_source_id = Column(Uuid, ForeignKey("module_source.id"), nullable=False, index=True)
    version_id = Column(Uuid, ForeignKey("module_versions.id"), nullable=False, index=True)

    environment = Column(Enum(DeploymentEnvironment), nullable=False)
    status = Column(Enum(DeploymentStatus), default=DeploymentStatus.PENDING, nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    version = relationship("ModuleVersion", back_populates="deployments", lazy="selectin")

    __table_args__ = (
        Index("idx_deployment_source_started", "module_source_id", "started_at"),
    )
