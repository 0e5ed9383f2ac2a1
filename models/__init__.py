"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class, portable JSON type and shared enums
    module_source: The author-owned module draft
    module_version: Immutable version snapshots and deployment audit rows
    marketplace_module: Public catalog projection written by the sync engine
    installation: Per-site module installations
    render_health: Per-site render outcome counters

Database Schema:
    All models inherit from the Base declarative class. JSON columns use
    JSONB on PostgreSQL and plain JSON elsewhere, so the same models run
    against SQLite in tests.

Usage:
    from models import ModuleSource, MarketplaceModule, SiteModuleInstallation
    from models.base import ModuleStatus, SourceType

Example:
    source = ModuleSource(
        slug="loyalty-points",
        name="Loyalty Points",
        render_code="export default function Loyalty() { return null; }",
    )
    session.add(source)
    await session.commit()

Relationships:
    - ModuleSource → ModuleVersion (one-to-many snapshots)
    - ModuleVersion → ModuleDeployment (one-to-many audit rows)
    - ModuleSource → MarketplaceModule (one-to-one projection)
"""

from models.base import Base
from models.module_source import ModuleSource
from models.module_version import ModuleVersion, ModuleDeployment
from models.marketplace_module import MarketplaceModule
from models.installation import SiteModuleInstallation
from models.render_health import ModuleRenderHealth

__all__ = [
    "Base",
    "ModuleSource",
    "ModuleVersion",
    "ModuleDeployment",
    "MarketplaceModule",
    "SiteModuleInstallation",
    "ModuleRenderHealth",
]
