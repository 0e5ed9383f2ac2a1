from sqlalchemy import Column, String, Integer, Enum, DateTime, Text, Index, Uuid
from datetime import datetime
import uuid
from models.base import Base, JSONType, ModuleStatus, PricingTier


class ModuleSource(Base):
    """
    The author's editable draft of a module.

    Owned by the authoring tool. The pipeline only reads the authored
    fields and writes the lifecycle fields (status, published_version,
    published_at, and the code fields on rollback/redeploy).

    Design:
    - slug is globally unique
    - rows are never deleted; status is the only lifecycle signal
    - settings_schema is an ordered mapping of field name -> descriptor
    """
    __tablename__ = "module_source"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slug = Column(String(100), nullable=False, unique=True, index=True)

    # Presentation
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)
    icon = Column(String(50), nullable=True)

    # Lifecycle
    status = Column(Enum(ModuleStatus), default=ModuleStatus.DRAFT, nullable=False, index=True)
    published_version = Column(String(50), nullable=True)
    published_at = Column(DateTime, nullable=True)

    # Render artifacts
    render_code = Column(Text, nullable=True)
    settings_schema = Column(JSONType, nullable=True)
    styles = Column(Text, nullable=True)
    default_settings = Column(JSONType, nullable=True)

    # Pricing (cents); explicit prices win over the tier table
    pricing_tier = Column(Enum(PricingTier), default=PricingTier.FREE, nullable=False)
    wholesale_price_monthly = Column(Integer, nullable=True)
    retail_price_monthly = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_module_source_status_updated", "status", "updated_at"),
    )
