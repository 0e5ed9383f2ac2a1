from sqlalchemy import (
    Column, String, Integer, Enum, DateTime, Text, Boolean, Float, ForeignKey, Index, Uuid
)
from datetime import datetime
import uuid
from models.base import Base, JSONType, SourceType, PricingType, BillingCycle


class MarketplaceModule(Base):
    """
    Public catalog projection of a published module.

    Written only by the sync engine. Never hard-deleted: unpublishing sets
    is_active to False so install history and ratings survive.

    Field ownership:
    - source-owned: everything copied from ModuleSource on each sync
    - catalog-owned: install_count, rating_average, rating_count
    """
    __tablename__ = "marketplace_modules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    module_source_id = Column(Uuid, ForeignKey("module_source.id"), nullable=True, unique=True)

    slug = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    icon = Column(String(50), nullable=True)
    version = Column(String(50), nullable=False, default="1.0.0")

    # Pricing (cents)
    pricing_type = Column(Enum(PricingType), default=PricingType.FREE, nullable=False)
    billing_cycle = Column(Enum(BillingCycle), default=BillingCycle.ONE_TIME, nullable=False)
    wholesale_price_monthly = Column(Integer, nullable=False, default=0)
    retail_price_monthly = Column(Integer, nullable=False, default=0)

    # Render artifacts copied from the source
    render_code = Column(Text, nullable=True)
    settings_schema = Column(JSONType, nullable=True)
    styles = Column(Text, nullable=True)
    default_settings = Column(JSONType, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    source_type = Column(Enum(SourceType), nullable=False, default=SourceType.STUDIO, index=True)

    # Catalog-owned statistics
    install_count = Column(Integer, nullable=False, default=0)
    rating_average = Column(Float, nullable=False, default=0.0)
    rating_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_marketplace_source_active", "source_type", "is_active"),
    )
