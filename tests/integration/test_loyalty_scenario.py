"""
End-to-end: author deploys a loyalty-points module, a site installs it and
the page renders it in a sandbox alongside a broken module.
"""

import pytest

from marketplace.catalog import CatalogService
from marketplace.installation import InstallationManager
from marketplace.loader import RenderLoader
from models.base import ModuleStatus, RenderStatus
from publishing.deployer import DeploymentPipeline
from runtime.engine import SandboxEngine
from runtime.health import RenderHealthRecorder


@pytest.mark.asyncio
async def test_publish_install_render(db_session, make_source):
    source = await make_source(slug="loyalty-points")

    # Author deploys to production
    deployed = await DeploymentPipeline(db_session).deploy(source.id, changelog="Initial release")
    assert deployed.success and deployed.warnings == []
    assert source.status == ModuleStatus.PUBLISHED

    # Module is discoverable
    entry = await CatalogService(db_session).resolve("loyalty-points")
    assert entry.is_dynamic
    assert entry.version == "1.0.0"

    # Site installs with an override; a second, broken module is staged for testing
    broken = await make_source(
        slug="broken-banner",
        status=ModuleStatus.TESTING,
        render_code="const Banner = () => null;",
    )
    manager = InstallationManager(db_session)
    await manager.install("42", "loyalty-points", {"headline": "Double points weekend"})
    await manager.install("42", str(broken.id))

    # Host contract
    modules = await RenderLoader(db_session).load_for_site("42")
    loyalty_key = str(source.id)
    assert [m.id for m in modules] == [loyalty_key, str(broken.id)]
    assert modules[0].merged_settings["headline"] == "Double points weekend"
    assert modules[0].merged_settings["points_per_dollar"] == 1

    # Page render: the broken module is contained, the loyalty module is unaffected
    results = await SandboxEngine(timeout=5).mount_page("42", modules)
    loyalty, banner = results
    assert loyalty.ok
    assert "Double points weekend" in loyalty.document.html
    assert loyalty.document.iframe_attributes["sandbox"] == "allow-scripts"
    assert banner.status == RenderStatus.ERROR.value
    assert banner.placeholder_html

    # Health is recorded per module
    recorder = RenderHealthRecorder(db_session)
    assert await recorder.record_mounts("42", results) == 2
    await recorder.report("42", loyalty_key, RenderStatus.OK)

    summary = await recorder.summary("42")
    by_module = {m.module_id: m for m in summary.modules}
    assert by_module[loyalty_key].success_count == 2
    assert by_module[str(broken.id)].failure_count == 1
    assert by_module[str(broken.id)].last_status == "error"
    assert summary.total_successes == 2
    assert summary.total_failures == 1

    # Unpublishing hides the module from the catalog but the site keeps it
    await DeploymentPipeline(db_session).unpublish(source.id)
    assert await CatalogService(db_session).resolve("loyalty-points") is None
    modules = await RenderLoader(db_session).load_for_site("42")
    assert [m.id for m in modules] == [loyalty_key, str(broken.id)]


@pytest.mark.asyncio
async def test_render_health_counts(db_session):
    recorder = RenderHealthRecorder(db_session)

    await recorder.report("42", "hotjar", RenderStatus.OK)
    await recorder.report("42", "hotjar", RenderStatus.TIMEOUT, "no MODULE_READY within 5s")
    await recorder.report("43", "hotjar", RenderStatus.OK)

    summary = await recorder.summary("42")
    assert len(summary.modules) == 1
    entry = summary.modules[0]
    assert (entry.success_count, entry.failure_count) == (1, 1)
    assert entry.last_status == "timeout"
    assert entry.last_error == "no MODULE_READY within 5s"

    await recorder.report("42", "hotjar", RenderStatus.OK)
    entry = (await recorder.summary("42")).modules[0]
    assert entry.last_status == "ok"
    assert entry.last_error is None
