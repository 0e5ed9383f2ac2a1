"""
Marketplace: discovery, per-site installation and render resolution.

Modules:
    merge: Override-wins settings merge
    static_catalog: Bundled first-party modules
    catalog: CatalogService merging dynamic and static entries by slug
    installation: InstallationManager with the EntitlementChecker hook
    loader: RenderLoader producing the host render contract

Usage:
    from marketplace.installation import InstallationManager
    from marketplace.loader import RenderLoader

Example:
    await InstallationManager(session).install("42", "loyalty-points", {"headline": "Hi"})
    modules = await RenderLoader(session).load_for_site("42")
"""
