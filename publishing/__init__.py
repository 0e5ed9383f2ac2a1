"""
Publishing pipeline: from an author's draft to a public catalog entry.

Modules:
    pricing: Tier table and retail markup for catalog prices
    versioning: Semver helpers and the append-only VersionLedger
    sync: SyncEngine projecting published sources into the catalog
    deployer: DeploymentPipeline (deploy, unpublish, rollback, redeploy)
    scheduler: APScheduler job running the periodic reconciliation

Flow:
    ModuleSource → DeploymentPipeline → VersionLedger + SyncEngine → MarketplaceModule

    The deploy→sync step is best-effort. A failed sync leaves the
    deployment successful with a warning; SyncScheduler runs
    SyncEngine.sync_all() on an interval to repair the catalog.

Usage:
    from publishing.deployer import DeploymentPipeline
    from publishing.sync import SyncEngine

Example:
    pipeline = DeploymentPipeline(session)
    result = await pipeline.deploy(source.id, changelog="Initial release", version="1.0.0")
    if result.warnings:
        logger.warning(result.warnings)
"""
