"""
Render Loader - resolves a site's enabled installations into renderable modules.

Resolution order per module id (installation key, slug or catalog id):
    (a) active dynamic catalog entry with render code
    (b) the ModuleSource itself, if it has render code; a catalog id is
        followed back to its source even when the entry is inactive

The fallback covers testing modules an author previews and modules that
were unsynced after a site installed them. A module that resolves to
nothing is skipped; one broken installation never blanks the page.
"""

from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.installation import SiteModuleInstallation
from marketplace.catalog import CatalogService
from marketplace.merge import merge_settings, module_defaults
from schemas.catalog import LoadedModule, RenderableModule

logger = logging.getLogger(__name__)


class RenderLoader:

    def __init__(self, db_session: AsyncSession, catalog: Optional[CatalogService] = None):
        self.db = db_session
        self.catalog = catalog or CatalogService(db_session)

    async def _resolve(self, module_id: str) -> Optional[LoadedModule]:
        module = await self.catalog.find_dynamic(module_id)
        if module is not None and module.render_code:
            return LoadedModule(
                id=module_id,
                slug=module.slug,
                name=module.name,
                version=module.version,
                render_code=module.render_code,
                styles=module.styles,
                settings_schema=module.settings_schema,
                default_settings=module_defaults(module.default_settings, module.settings_schema),
                resolved_from="catalog",
            )

        source = await self.catalog.find_source(module_id)
        if source is not None and source.render_code:
            return LoadedModule(
                id=module_id,
                slug=source.slug,
                name=source.name,
                version=source.published_version,
                render_code=source.render_code,
                styles=source.styles,
                settings_schema=source.settings_schema,
                default_settings=module_defaults(source.default_settings, source.settings_schema),
                resolved_from="source",
            )

        return None

    async def load_one(self, module_id: str) -> Optional[LoadedModule]:
        """
        Resolve code and defaults for one module.

        Returns None when the module cannot currently render, including
        when the lookup itself fails.
        """
        try:
            return await self._resolve(module_id)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to load module {module_id}: {e}", exc_info=True)
            return None

    async def load_for_site(self, site_id: str) -> List[RenderableModule]:
        """
        Ordered host contract for a site: enabled installations by install
        time, each with the installation settings merged over the module
        defaults.
        """
        result = await self.db.execute(
            select(SiteModuleInstallation)
            .where(
                SiteModuleInstallation.site_id == site_id,
                SiteModuleInstallation.is_enabled.is_(True),
            )
            .order_by(SiteModuleInstallation.installed_at)
        )
        installations = [(i.module_id, dict(i.settings or {})) for i in result.scalars().all()]

        modules: List[RenderableModule] = []
        skipped = 0
        for module_id, installed_settings in installations:
            loaded = await self.load_one(module_id)
            if loaded is None:
                skipped += 1
                logger.warning(f"Skipping {module_id} on site {site_id}: no renderable code")
                continue

            modules.append(RenderableModule(
                id=module_id,
                name=loaded.name,
                code=loaded.render_code,
                styles=loaded.styles,
                settings_schema=loaded.settings_schema,
                merged_settings=merge_settings(loaded.default_settings, installed_settings),
                version=loaded.version,
            ))

        logger.info(f"Loaded {len(modules)} module(s) for site {site_id} ({skipped} skipped)")
        return modules
