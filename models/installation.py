from sqlalchemy import Column, String, Boolean, DateTime, Index, UniqueConstraint, Uuid
from datetime import datetime
import uuid
from models.base import Base, JSONType


class SiteModuleInstallation(Base):
    """
    Per-site enablement of a module with the tenant's settings overrides.

    Design:
    - At most one row per (site_id, module_id); the render path relies on it
    - Hard-deleted on uninstall
    - module_id is the key the installer resolved (catalog id, slug or
      module source id), which the render loader resolves again at load time
    """
    __tablename__ = "site_module_installations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(String(100), nullable=False, index=True)
    module_id = Column(String(255), nullable=False, index=True)

    settings = Column(JSONType, nullable=False, default=dict)
    is_enabled = Column(Boolean, nullable=False, default=True)

    installed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("site_id", "module_id", name="uq_site_module_installation"),
        Index("idx_installation_site_enabled", "site_id", "is_enabled"),
    )
