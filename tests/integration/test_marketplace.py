"""
Integration tests for the catalog, installations and the render loader
"""

import pytest
from unittest.mock import AsyncMock, patch

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    SettingsValidationError,
)
from marketplace.catalog import CatalogService
from marketplace.installation import InstallationManager
from marketplace.loader import RenderLoader
from marketplace.static_catalog import STATIC_CATALOG
from models.base import ModuleStatus
from models.marketplace_module import MarketplaceModule
from publishing.deployer import DeploymentPipeline
from publishing.sync import SyncEngine


async def _published(make_source, db_session, **overrides):
    """A source deployed to production with its catalog entry synced."""
    source = await make_source(**overrides)
    await DeploymentPipeline(db_session).deploy(source.id, changelog="Initial release")
    return source


class DenyAll:
    async def can_install(self, site_id, module):
        return False


# ============================================================================
# Catalog
# ============================================================================

class TestCatalogService:

    @pytest.mark.asyncio
    async def test_static_catalog_when_nothing_published(self, db_session):
        entries = await CatalogService(db_session).list_modules()

        assert len(entries) == len(STATIC_CATALOG)
        assert [e.name for e in entries] == sorted((e.name for e in entries), key=str.lower)
        assert not any(e.is_dynamic for e in entries)

    @pytest.mark.asyncio
    async def test_dynamic_entries_listed(self, db_session, make_source):
        await _published(make_source, db_session, slug="loyalty-points")

        entries = await CatalogService(db_session).list_modules()
        slugs = [e.slug for e in entries]

        assert "loyalty-points" in slugs
        assert len(entries) == len(STATIC_CATALOG) + 1

    @pytest.mark.asyncio
    async def test_dynamic_wins_on_slug(self, db_session, make_source):
        await _published(make_source, db_session, slug="hotjar", name="Hotjar Studio Edition")

        entries = await CatalogService(db_session).list_modules()
        hotjar = [e for e in entries if e.slug == "hotjar"]

        assert len(entries) == len(STATIC_CATALOG)
        assert len(hotjar) == 1
        assert hotjar[0].is_dynamic is True
        assert hotjar[0].name == "Hotjar Studio Edition"

    @pytest.mark.asyncio
    async def test_inactive_entries_hidden(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        await SyncEngine(db_session).unsync(source.id)

        slugs = [e.slug for e in await CatalogService(db_session).list_modules()]
        assert "loyalty-points" not in slugs

    @pytest.mark.asyncio
    async def test_filters(self, db_session, make_source):
        await _published(make_source, db_session, slug="loyalty-points", category="marketing")
        catalog = CatalogService(db_session)

        marketing = await catalog.list_modules(category="Marketing")
        assert {e.slug for e in marketing} == {"loyalty-points", "popup-builder"}

        assert [e.slug for e in await catalog.list_modules(search="heatmap")] == ["hotjar"]

    @pytest.mark.asyncio
    async def test_resolve(self, db_session, make_source):
        await _published(make_source, db_session, slug="loyalty-points")
        catalog = CatalogService(db_session)

        by_slug = await catalog.resolve("loyalty-points")
        by_id = await catalog.resolve(by_slug.id)

        assert by_slug.is_dynamic is True
        assert by_id.slug == "loyalty-points"
        assert (await catalog.resolve("mod_seo_toolkit")).slug == "seo-toolkit"
        assert (await catalog.resolve("seo-toolkit")).id == "mod_seo_toolkit"
        assert await catalog.resolve("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_non_studio_projection_ignored(self, db_session):
        from models.base import SourceType
        db_session.add(MarketplaceModule(slug="imported-thing", name="Imported", source_type=SourceType.IMPORTED))
        await db_session.commit()

        assert await CatalogService(db_session).resolve("imported-thing") is None


# ============================================================================
# Installations
# ============================================================================

class TestInstallationManager:

    @pytest.mark.asyncio
    async def test_install_merges_defaults(self, db_session, make_source, loyalty_defaults):
        source = await _published(make_source, db_session, slug="loyalty-points")

        installation = await InstallationManager(db_session).install(
            "42", "loyalty-points", {"headline": "Double points"},
        )

        assert installation.site_id == "42"
        assert installation.module_id == str(source.id)
        assert installation.is_enabled is True
        assert installation.settings == {**loyalty_defaults, "headline": "Double points"}

    @pytest.mark.asyncio
    async def test_install_static_module(self, db_session):
        installation = await InstallationManager(db_session).install("42", "google-analytics")

        assert installation.settings == {}
        assert installation.module_id == "mod_analytics_google"

    @pytest.mark.asyncio
    async def test_duplicate_install_conflicts(self, db_session):
        manager = InstallationManager(db_session)
        await manager.install("42", "google-analytics")

        with pytest.raises(ConflictError):
            await manager.install("42", "google-analytics")

        assert len(await manager.list_for_site("42")) == 1

    @pytest.mark.asyncio
    async def test_same_module_under_another_id_conflicts(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        entry = await CatalogService(db_session).resolve("loyalty-points")
        manager = InstallationManager(db_session)
        await manager.install("42", "loyalty-points")

        for alias in (entry.id, str(source.id)):
            with pytest.raises(ConflictError):
                await manager.install("42", alias)

        assert len(await manager.list_for_site("42")) == 1

    @pytest.mark.asyncio
    async def test_static_module_by_id_and_slug_conflicts(self, db_session):
        manager = InstallationManager(db_session)
        await manager.install("42", "hotjar")

        with pytest.raises(ConflictError):
            await manager.install("42", "mod_analytics_hotjar")

    @pytest.mark.asyncio
    async def test_manage_installation_by_any_id(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        entry = await CatalogService(db_session).resolve("loyalty-points")
        manager = InstallationManager(db_session)
        await manager.install("42", entry.id)

        updated = await manager.update_settings("42", "loyalty-points", {"layout": "banner"})
        assert updated.module_id == str(source.id)

        await manager.set_enabled("42", str(source.id), False)
        assert await manager.list_for_site("42", enabled_only=True) == []

        assert await manager.uninstall("42", entry.id) is True
        assert await manager.list_for_site("42") == []

    @pytest.mark.asyncio
    async def test_uninstall_after_unpublish(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        manager = InstallationManager(db_session)
        await manager.install("42", "loyalty-points")
        await DeploymentPipeline(db_session).unpublish(source.id)

        assert await manager.uninstall("42", "loyalty-points") is True

    @pytest.mark.asyncio
    async def test_source_without_defaults_uses_schema_defaults(self, db_session, make_source, loyalty_defaults):
        await make_source(slug="loyalty-points", status=ModuleStatus.TESTING, default_settings=None)

        installation = await InstallationManager(db_session).install("42", "loyalty-points")

        assert installation.settings == loyalty_defaults

    @pytest.mark.asyncio
    async def test_same_module_on_two_sites(self, db_session):
        manager = InstallationManager(db_session)
        await manager.install("42", "google-analytics")
        await manager.install("43", "google-analytics")

        assert len(await manager.list_for_site("42")) == 1
        assert len(await manager.list_for_site("43")) == 1

    @pytest.mark.asyncio
    async def test_unknown_module(self, db_session):
        with pytest.raises(NotFoundError):
            await InstallationManager(db_session).install("42", "no-such-module")

    @pytest.mark.asyncio
    async def test_testing_source_installable(self, db_session, make_source):
        source = await make_source(status=ModuleStatus.TESTING)

        installation = await InstallationManager(db_session).install("42", str(source.id))

        assert installation.module_id == str(source.id)

    @pytest.mark.asyncio
    async def test_draft_source_not_installable(self, db_session, make_source):
        source = await make_source(status=ModuleStatus.DRAFT)

        with pytest.raises(NotFoundError):
            await InstallationManager(db_session).install("42", source.slug)

    @pytest.mark.asyncio
    async def test_entitlement_denied(self, db_session):
        with pytest.raises(AuthorizationError):
            await InstallationManager(db_session, entitlements=DenyAll()).install("42", "hotjar")

    @pytest.mark.asyncio
    async def test_invalid_settings_rejected(self, db_session, make_source):
        await _published(make_source, db_session, slug="loyalty-points")
        manager = InstallationManager(db_session)

        with pytest.raises(SettingsValidationError) as exc_info:
            await manager.install("42", "loyalty-points", {"points_per_dollar": "lots"})

        assert "points_per_dollar" in exc_info.value.context["field_errors"]
        assert await manager.list_for_site("42") == []

    @pytest.mark.asyncio
    async def test_blank_keys_rejected(self, db_session):
        from core.exceptions import ValidationError
        with pytest.raises(ValidationError):
            await InstallationManager(db_session).install(" ", "hotjar")

    @pytest.mark.asyncio
    async def test_uninstall_is_idempotent(self, db_session):
        manager = InstallationManager(db_session)
        await manager.install("42", "hotjar")

        assert await manager.uninstall("42", "hotjar") is True
        assert await manager.uninstall("42", "hotjar") is False
        assert await manager.list_for_site("42") == []

    @pytest.mark.asyncio
    async def test_update_settings_replaces(self, db_session, make_source):
        await _published(make_source, db_session, slug="loyalty-points")
        manager = InstallationManager(db_session)
        await manager.install("42", "loyalty-points", {"headline": "Hi"})

        updated = await manager.update_settings("42", "loyalty-points", {"layout": "banner"})

        assert updated.settings == {"layout": "banner"}
        with pytest.raises(SettingsValidationError):
            await manager.update_settings("42", "loyalty-points", {"accent": "red"})

    @pytest.mark.asyncio
    async def test_update_settings_requires_installation(self, db_session):
        with pytest.raises(NotFoundError):
            await InstallationManager(db_session).update_settings("42", "hotjar", {})

    @pytest.mark.asyncio
    async def test_set_enabled(self, db_session):
        manager = InstallationManager(db_session)
        await manager.install("42", "hotjar")

        await manager.set_enabled("42", "hotjar", False)

        assert await manager.list_for_site("42", enabled_only=True) == []
        assert len(await manager.list_for_site("42")) == 1


# ============================================================================
# Render loader
# ============================================================================

class TestRenderLoader:

    @pytest.mark.asyncio
    async def test_loads_catalog_module_with_merged_settings(self, db_session, make_source, loyalty_code):
        source = await _published(make_source, db_session, slug="loyalty-points")
        await InstallationManager(db_session).install("42", "loyalty-points", {"headline": "Hi"})

        modules = await RenderLoader(db_session).load_for_site("42")

        assert len(modules) == 1
        assert modules[0].id == str(source.id)
        assert modules[0].name == "Loyalty Points"
        assert modules[0].code == loyalty_code
        assert modules[0].version == "1.0.0"
        assert modules[0].merged_settings["headline"] == "Hi"
        assert modules[0].merged_settings["layout"] == "card"

    @pytest.mark.asyncio
    async def test_static_module_without_code_is_skipped(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        manager = InstallationManager(db_session)
        await manager.install("42", "google-analytics")
        await manager.install("42", "loyalty-points")

        modules = await RenderLoader(db_session).load_for_site("42")

        assert [m.id for m in modules] == [str(source.id)]

    @pytest.mark.asyncio
    async def test_order_follows_install_time(self, db_session, make_source):
        first = await _published(make_source, db_session, slug="first-module")
        second = await _published(make_source, db_session, slug="second-module")
        manager = InstallationManager(db_session)
        await manager.install("42", "second-module")
        await manager.install("42", "first-module")

        modules = await RenderLoader(db_session).load_for_site("42")

        assert [m.id for m in modules] == [str(second.id), str(first.id)]

    @pytest.mark.asyncio
    async def test_disabled_installations_excluded(self, db_session, make_source):
        await _published(make_source, db_session, slug="loyalty-points")
        manager = InstallationManager(db_session)
        await manager.install("42", "loyalty-points")
        await manager.set_enabled("42", "loyalty-points", False)

        assert await RenderLoader(db_session).load_for_site("42") == []

    @pytest.mark.asyncio
    async def test_unpublished_module_keeps_rendering_from_source(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        await InstallationManager(db_session).install("42", "loyalty-points")
        await DeploymentPipeline(db_session).unpublish(source.id)

        loaded = await RenderLoader(db_session).load_one("loyalty-points")
        modules = await RenderLoader(db_session).load_for_site("42")

        assert loaded.resolved_from == "source"
        assert [m.id for m in modules] == [str(source.id)]

    @pytest.mark.asyncio
    async def test_catalog_id_install_survives_unpublish(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        entry = await CatalogService(db_session).resolve("loyalty-points")
        await InstallationManager(db_session).install("42", entry.id)
        await DeploymentPipeline(db_session).unpublish(source.id)

        modules = await RenderLoader(db_session).load_for_site("42")

        assert [m.id for m in modules] == [str(source.id)]
        assert modules[0].name == "Loyalty Points"

    @pytest.mark.asyncio
    async def test_inactive_catalog_id_falls_back_to_source(self, db_session, make_source):
        source = await _published(make_source, db_session, slug="loyalty-points")
        entry = await CatalogService(db_session).resolve("loyalty-points")
        await DeploymentPipeline(db_session).unpublish(source.id)

        loaded = await RenderLoader(db_session).load_one(entry.id)

        assert loaded is not None
        assert loaded.resolved_from == "source"
        assert loaded.slug == "loyalty-points"

    @pytest.mark.asyncio
    async def test_testing_module_loads_from_source(self, db_session, make_source):
        source = await make_source(status=ModuleStatus.TESTING)
        await InstallationManager(db_session).install("42", source.slug)

        modules = await RenderLoader(db_session).load_for_site("42")

        assert [m.id for m in modules] == [str(source.id)]

    @pytest.mark.asyncio
    async def test_lookup_failure_skips_only_that_module(self, db_session, make_source):
        good = await _published(make_source, db_session, slug="good-module")
        bad = await _published(make_source, db_session, slug="bad-module")
        manager = InstallationManager(db_session)
        await manager.install("42", "good-module")
        await manager.install("42", "bad-module")

        loader = RenderLoader(db_session)
        real_find = loader.catalog.find_dynamic
        bad_key = str(bad.id)

        async def flaky_find(module_id, active_only=True):
            if module_id == bad_key:
                raise RuntimeError("connection reset")
            return await real_find(module_id, active_only)

        with patch.object(loader.catalog, "find_dynamic", AsyncMock(side_effect=flaky_find)):
            modules = await loader.load_for_site("42")

        assert [m.id for m in modules] == [str(good.id)]

    @pytest.mark.asyncio
    async def test_empty_site(self, db_session):
        assert await RenderLoader(db_session).load_for_site("nobody") == []
