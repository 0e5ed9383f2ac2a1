"""
Pydantic schemas for the catalog, installations and the render contract
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from uuid import UUID

from models.base import PricingType, BillingCycle, SourceType


class CatalogEntry(BaseModel):
    """One module in the merged (dynamic + static) catalog"""
    id: str
    slug: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    icon: Optional[str] = None
    version: str = "1.0.0"

    pricing_type: PricingType = PricingType.FREE
    billing_cycle: BillingCycle = BillingCycle.ONE_TIME
    wholesale_price_monthly: int = 0
    retail_price_monthly: int = 0

    render_code: Optional[str] = None
    settings_schema: Optional[Dict[str, Any]] = None
    styles: Optional[str] = None
    default_settings: Optional[Dict[str, Any]] = None

    source_type: SourceType = SourceType.CATALOG
    module_source_id: Optional[UUID] = None
    is_dynamic: bool = False

    install_count: int = 0
    rating_average: float = 0.0
    rating_count: int = 0

    class Config:
        use_enum_values = True
        frozen = True

    @classmethod
    def from_projection(cls, module) -> "CatalogEntry":
        """Build an entry from a MarketplaceModule row."""
        return cls(
            id=str(module.id),
            slug=module.slug,
            name=module.name,
            description=module.description,
            category=module.category,
            icon=module.icon,
            version=module.version,
            pricing_type=module.pricing_type,
            billing_cycle=module.billing_cycle,
            wholesale_price_monthly=module.wholesale_price_monthly or 0,
            retail_price_monthly=module.retail_price_monthly or 0,
            render_code=module.render_code,
            settings_schema=module.settings_schema,
            styles=module.styles,
            default_settings=module.default_settings,
            source_type=module.source_type,
            module_source_id=module.module_source_id,
            is_dynamic=True,
            install_count=module.install_count or 0,
            rating_average=module.rating_average or 0.0,
            rating_count=module.rating_count or 0,
        )


class LoadedModule(BaseModel):
    """Code and defaults resolved for one module id by the render loader"""
    id: str
    slug: Optional[str] = None
    name: str
    version: Optional[str] = None
    render_code: str
    styles: Optional[str] = None
    settings_schema: Optional[Dict[str, Any]] = None
    default_settings: Dict[str, Any] = Field(default_factory=dict)
    resolved_from: str = Field(..., description="catalog or source")


class RenderableModule(BaseModel):
    """
    Host contract: one entry of the ordered list handed to the sandbox.

    ``merged_settings`` is the override-wins merge of the module defaults
    and the site's installation settings.
    """
    id: str
    name: str
    code: str
    styles: Optional[str] = None
    settings_schema: Optional[Dict[str, Any]] = None
    merged_settings: Dict[str, Any] = Field(default_factory=dict)
    version: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "loyalty-points",
                "name": "Loyalty Points",
                "code": "export default function Loyalty({ settings }) { ... }",
                "styles": ".loyalty { padding: 12px; }",
                "settings_schema": {"headline": {"type": "text"}},
                "merged_settings": {"headline": "Earn double points"},
                "version": "1.0.0"
            }
        }


class InstallationResponse(BaseModel):
    id: UUID
    site_id: str
    module_id: str
    settings: Dict[str, Any] = Field(default_factory=dict)
    is_enabled: bool
    installed_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
