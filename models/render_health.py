from sqlalchemy import Column, String, Integer, Enum, DateTime, Text, UniqueConstraint, Uuid
from datetime import datetime
import uuid
from models.base import Base, RenderStatus


class ModuleRenderHealth(Base):
    """
    Render outcome counters per (site, module).

    Fed by the server-side mount and by the sandbox's MODULE_READY /
    MODULE_ERROR reports, so module health can be tracked without
    inspecting sandboxed content.
    """
    __tablename__ = "module_render_health"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(String(100), nullable=False, index=True)
    module_id = Column(String(255), nullable=False, index=True)

    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    last_status = Column(Enum(RenderStatus), nullable=False, default=RenderStatus.OK)
    last_error = Column(Text, nullable=True)

    last_reported_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("site_id", "module_id", name="uq_render_health_site_module"),
    )
