"""
Catalog Service - one discovery surface over the dynamic and static catalogs.

Dynamic entries are active studio projections written by the sync engine.
Static entries are the bundled first-party modules. When both carry the
same slug, the dynamic entry wins.
"""

from typing import Dict, List, Optional, Sequence
from uuid import UUID
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import SourceType
from models.marketplace_module import MarketplaceModule
from models.module_source import ModuleSource
from marketplace.static_catalog import STATIC_CATALOG
from schemas.catalog import CatalogEntry

logger = logging.getLogger(__name__)


def parse_uuid(value: str) -> Optional[UUID]:
    """Return the UUID when ``value`` looks like a generated identifier."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        return None


class CatalogService:
    """Read-only merged catalog"""

    def __init__(self, db_session: AsyncSession, static_catalog: Sequence[CatalogEntry] = STATIC_CATALOG):
        self.db = db_session
        self.static_catalog = tuple(static_catalog)

    async def find_dynamic(self, id_or_slug: str, active_only: bool = True) -> Optional[MarketplaceModule]:
        """
        Dynamic catalog lookup: by catalog id or source id when the key is
        a UUID, then by slug.
        """
        filters = [MarketplaceModule.source_type == SourceType.STUDIO]
        if active_only:
            filters.append(MarketplaceModule.is_active.is_(True))

        module_uuid = parse_uuid(id_or_slug)
        if module_uuid is not None:
            result = await self.db.execute(
                select(MarketplaceModule).where(
                    or_(
                        MarketplaceModule.id == module_uuid,
                        MarketplaceModule.module_source_id == module_uuid,
                    ),
                    *filters,
                )
            )
            module = result.scalars().first()
            if module is not None:
                return module

        result = await self.db.execute(
            select(MarketplaceModule).where(MarketplaceModule.slug == str(id_or_slug), *filters)
        )
        return result.scalar_one_or_none()

    async def find_source(self, id_or_slug: str) -> Optional[ModuleSource]:
        """
        ModuleSource lookup by id or slug, regardless of status.

        A catalog id is followed back to its source whether or not the
        projection is still active.
        """
        source_uuid = parse_uuid(id_or_slug)
        if source_uuid is not None:
            source = await self.db.get(ModuleSource, source_uuid)
            if source is not None:
                return source

            module = await self.db.get(MarketplaceModule, source_uuid)
            if module is not None and module.module_source_id is not None:
                return await self.db.get(ModuleSource, module.module_source_id)

        result = await self.db.execute(
            select(ModuleSource).where(ModuleSource.slug == str(id_or_slug))
        )
        return result.scalar_one_or_none()

    def find_static(self, id_or_slug: str) -> Optional[CatalogEntry]:
        for entry in self.static_catalog:
            if entry.id == id_or_slug or entry.slug == id_or_slug:
                return entry
        return None

    async def list_modules(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[CatalogEntry]:
        """
        Active dynamic entries unioned with the static catalog.

        De-duplicated by slug (dynamic wins) and sorted by name.
        """
        result = await self.db.execute(
            select(MarketplaceModule).where(
                MarketplaceModule.source_type == SourceType.STUDIO,
                MarketplaceModule.is_active.is_(True),
            )
        )
        merged: Dict[str, CatalogEntry] = {
            entry.slug: entry for entry in self.static_catalog
        }
        for module in result.scalars().all():
            merged[module.slug] = CatalogEntry.from_projection(module)

        entries = list(merged.values())

        if category:
            entries = [e for e in entries if (e.category or "").lower() == category.lower()]

        if search:
            q = search.lower()
            entries = [
                e for e in entries
                if q in e.name.lower()
                or q in (e.description or "").lower()
                or q in (e.category or "").lower()
                or q in e.slug
            ]

        entries.sort(key=lambda e: e.name.lower())
        return entries

    async def resolve(self, id_or_slug: str) -> Optional[CatalogEntry]:
        """
        Resolve one catalog entry.

        Dynamic by id (UUID keys only), dynamic by slug, then static by id
        or slug. Returns None when nothing matches.
        """
        module = await self.find_dynamic(id_or_slug)
        if module is not None:
            return CatalogEntry.from_projection(module)

        entry = self.find_static(id_or_slug)
        if entry is None:
            logger.debug(f"Catalog lookup missed for {id_or_slug}")
        return entry
