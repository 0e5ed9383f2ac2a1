"""
First-party modules bundled with the platform.

Read-only. Studio modules synced into MarketplaceModule override these
entries by slug.
"""

from typing import Tuple

from models.base import PricingType, BillingCycle, SourceType
from schemas.catalog import CatalogEntry


def _entry(id, slug, name, description, category, icon, retail=0, rating=0.0, installs=0) -> CatalogEntry:
    pricing_type = PricingType.MONTHLY if retail else PricingType.FREE
    billing_cycle = BillingCycle.MONTHLY if retail else BillingCycle.ONE_TIME
    return CatalogEntry(
        id=id,
        slug=slug,
        name=name,
        description=description,
        category=category,
        icon=icon,
        version="1.0.0",
        pricing_type=pricing_type,
        billing_cycle=billing_cycle,
        wholesale_price_monthly=retail // 2,
        retail_price_monthly=retail,
        source_type=SourceType.CATALOG,
        install_count=installs,
        rating_average=rating,
    )


STATIC_CATALOG: Tuple[CatalogEntry, ...] = (
    _entry("mod_analytics_google", "google-analytics", "Google Analytics 4",
           "Integrate Google Analytics 4 for comprehensive website analytics.",
           "analytics", "ChartBar", rating=4.8, installs=2340),
    _entry("mod_analytics_hotjar", "hotjar", "Hotjar Heatmaps",
           "Heatmaps and session recordings to see how visitors use your site.",
           "analytics", "Flame", retail=999, rating=4.6, installs=870),
    _entry("mod_seo_toolkit", "seo-toolkit", "SEO Toolkit Pro",
           "Meta tags, sitemaps and structured data in one place.",
           "seo", "Search", retail=1999, rating=4.7, installs=1520),
    _entry("mod_ecommerce_cart", "shopping-cart", "Shopping Cart",
           "A drop-in cart and checkout flow for product pages.",
           "ecommerce", "ShoppingCart", retail=2499, rating=4.5, installs=640),
    _entry("mod_forms_advanced", "advanced-forms", "Advanced Forms",
           "Multi-step forms with conditional logic and file uploads.",
           "forms", "FileText", retail=999, rating=4.4, installs=910),
    _entry("mod_social_share", "social-sharing", "Social Sharing",
           "Share buttons for every major social network.",
           "social", "Share2", rating=4.3, installs=1890),
    _entry("mod_marketing_popup", "popup-builder", "Popup Builder",
           "Exit-intent and timed popups for lead capture.",
           "marketing", "MessageSquare", retail=1499, rating=4.2, installs=730),
    _entry("mod_security_backup", "auto-backup", "Auto Backup",
           "Scheduled backups of site content with one-click restore.",
           "security", "HardDrive", retail=499, rating=4.9, installs=1210),
)
