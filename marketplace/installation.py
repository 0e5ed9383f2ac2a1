"""
Installation Manager - per-site module installations.

(site_id, module_id) is unique. The stored module_id is the module's
installation key: the ModuleSource id for studio modules, the static entry
id for bundled ones. Callers may pass a slug, catalog id or source id; all
of them map to the same key.

The existence check before insert is optimistic; the database constraint
is what actually rejects a racing duplicate, and the render loader
tolerates modules that became unavailable after install.
"""

from typing import Any, Dict, List, Optional, Protocol
from datetime import datetime
import logging

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
    PersistenceError,
)
from models.base import ModuleStatus, SourceType
from models.installation import SiteModuleInstallation
from models.module_source import ModuleSource
from marketplace.catalog import CatalogService
from marketplace.merge import merge_settings, module_defaults
from publishing.pricing import resolve_pricing
from schemas.catalog import CatalogEntry
from schemas.settings_schema import SettingsSchema

logger = logging.getLogger(__name__)

INSTALLABLE_SOURCE_STATUSES = (ModuleStatus.PUBLISHED, ModuleStatus.TESTING)


class EntitlementChecker(Protocol):
    """Billing hook consulted before every install."""

    async def can_install(self, site_id: str, module: CatalogEntry) -> bool:
        ...


class AllowAllEntitlements:
    async def can_install(self, site_id: str, module: CatalogEntry) -> bool:
        return True


def entry_from_source(source: ModuleSource) -> CatalogEntry:
    price = resolve_pricing(source)
    return CatalogEntry(
        id=str(source.id),
        slug=source.slug,
        name=source.name,
        description=source.description,
        category=source.category,
        icon=source.icon,
        version=source.published_version or "0.0.0",
        pricing_type=price.pricing_type,
        billing_cycle=price.billing_cycle,
        wholesale_price_monthly=price.wholesale_price_monthly,
        retail_price_monthly=price.retail_price_monthly,
        render_code=source.render_code,
        settings_schema=source.settings_schema,
        styles=source.styles,
        default_settings=module_defaults(source.default_settings, source.settings_schema),
        source_type=SourceType.STUDIO,
        module_source_id=source.id,
    )


def key_for(module: CatalogEntry) -> str:
    if module.module_source_id is not None:
        return str(module.module_source_id)
    return module.id


class InstallationManager:
    """
    Responsibilities:
    - Only available modules can be installed
    - At most one installation per (site, module)
    - Settings are validated against the module's schema before merge
    """

    def __init__(
        self,
        db_session: AsyncSession,
        entitlements: Optional[EntitlementChecker] = None,
        catalog: Optional[CatalogService] = None,
    ):
        self.db = db_session
        self.entitlements = entitlements or AllowAllEntitlements()
        self.catalog = catalog or CatalogService(db_session)

    async def resolve_installable(self, module_id: str) -> Optional[CatalogEntry]:
        """
        The module a site may install under ``module_id``.

        Active dynamic catalog entry, then a published or testing
        ModuleSource, then the static catalog.
        """
        module = await self.catalog.find_dynamic(module_id)
        if module is not None:
            return CatalogEntry.from_projection(module)

        source = await self.catalog.find_source(module_id)
        if source is not None and source.status in INSTALLABLE_SOURCE_STATUSES:
            return entry_from_source(source)

        return self.catalog.find_static(module_id)

    async def installation_key(self, module_id: str) -> str:
        """
        Installation key for ``module_id``.

        Resolves through the installable module first, then any source
        (an unpublished module keeps its key). Unknown ids come back
        unchanged.
        """
        module = await self.resolve_installable(module_id)
        if module is not None:
            return key_for(module)

        source = await self.catalog.find_source(module_id)
        if source is not None:
            return str(source.id)
        return module_id

    async def _get(self, site_id: str, module_id: str) -> Optional[SiteModuleInstallation]:
        result = await self.db.execute(
            select(SiteModuleInstallation).where(
                SiteModuleInstallation.site_id == site_id,
                SiteModuleInstallation.module_id == module_id,
            )
        )
        return result.scalar_one_or_none()

    async def _require(self, site_id: str, module_id: str) -> SiteModuleInstallation:
        installation = await self._get(site_id, module_id)
        if installation is None:
            raise NotFoundError(
                "Module is not installed on this site",
                context={"site_id": site_id, "module_id": module_id},
            )
        return installation

    async def _commit(self, operation: str, site_id: str, module_id: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                "Module is already installed on this site",
                context={"site_id": site_id, "module_id": module_id, "constraint": "site_id,module_id"},
                original_exception=e,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to write installation",
                context={
                    "operation": operation,
                    "table_name": SiteModuleInstallation.__tablename__,
                    "site_id": site_id,
                    "module_id": module_id,
                },
                original_exception=e,
            )

    @staticmethod
    def _check_keys(site_id: str, module_id: str) -> None:
        if not (site_id or "").strip() or not (module_id or "").strip():
            raise ValidationError(
                "site_id and module_id are required",
                context={"site_id": site_id, "module_id": module_id},
            )

    async def install(
        self,
        site_id: str,
        module_id: str,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> SiteModuleInstallation:
        """
        Install a module on a site.

        Stored settings are merge_settings(module defaults, overrides); the
        row is keyed by the module's installation key, whichever id or slug
        the caller used.

        Raises:
            NotFoundError: If no available module matches ``module_id``
            AuthorizationError: If the entitlement check denies the install
            ConflictError: If the module is already installed on the site
            SettingsValidationError: If overrides do not match the settings schema
        """
        self._check_keys(site_id, module_id)

        module = await self.resolve_installable(module_id)
        if module is None:
            raise NotFoundError(
                "Module not found or not available for installation",
                context={"site_id": site_id, "module_id": module_id},
            )
        key = key_for(module)

        if not await self.entitlements.can_install(site_id, module):
            raise AuthorizationError(
                "Site is not entitled to install this module",
                context={"site_id": site_id, "module_id": key},
            )

        if await self._get(site_id, key) is not None:
            raise ConflictError(
                "Module is already installed on this site",
                context={"site_id": site_id, "module_id": key, "constraint": "site_id,module_id"},
            )

        SettingsSchema.parse(module.settings_schema).validate_settings(overrides or {})

        installation = SiteModuleInstallation(
            site_id=site_id,
            module_id=key,
            settings=merge_settings(module.default_settings, overrides),
            is_enabled=True,
        )
        self.db.add(installation)
        await self._commit("INSERT", site_id, key)

        logger.info(f"Installed {module.slug} ({key}) on site {site_id}")
        return installation

    async def uninstall(self, site_id: str, module_id: str) -> bool:
        """Delete the installation. Returns whether a row existed; a missing row is not an error."""
        key = await self.installation_key(module_id)
        result = await self.db.execute(
            delete(SiteModuleInstallation).where(
                SiteModuleInstallation.site_id == site_id,
                SiteModuleInstallation.module_id == key,
            )
        )
        await self._commit("DELETE", site_id, key)

        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info(f"Uninstalled {key} from site {site_id}")
        return removed

    async def update_settings(
        self,
        site_id: str,
        module_id: str,
        settings: Dict[str, Any],
    ) -> SiteModuleInstallation:
        """
        Replace the stored settings mapping.

        Validated against the module's schema when the module still
        resolves; an installation whose module became unavailable keeps
        accepting settings.
        """
        key = await self.installation_key(module_id)
        installation = await self._require(site_id, key)

        module = await self.resolve_installable(key)
        if module is None:
            source = await self.catalog.find_source(key)
            schema_raw = source.settings_schema if source is not None else None
        else:
            schema_raw = module.settings_schema
        SettingsSchema.parse(schema_raw).validate_settings(settings or {})

        installation.settings = dict(settings or {})
        installation.updated_at = datetime.utcnow()
        await self._commit("UPDATE", site_id, key)
        return installation

    async def set_enabled(self, site_id: str, module_id: str, enabled: bool) -> SiteModuleInstallation:
        key = await self.installation_key(module_id)
        installation = await self._require(site_id, key)
        installation.is_enabled = enabled
        installation.updated_at = datetime.utcnow()
        await self._commit("UPDATE", site_id, key)
        logger.info(f"{'Enabled' if enabled else 'Disabled'} {key} on site {site_id}")
        return installation

    async def list_for_site(self, site_id: str, enabled_only: bool = False) -> List[SiteModuleInstallation]:
        query = select(SiteModuleInstallation).where(SiteModuleInstallation.site_id == site_id)
        if enabled_only:
            query = query.where(SiteModuleInstallation.is_enabled.is_(True))
        result = await self.db.execute(query.order_by(SiteModuleInstallation.installed_at))
        return list(result.scalars().all())
