"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models for request/response validation
and for the results passed between pipeline stages:

Schemas:
    settings_schema: Author-defined settings schema (tagged union of field descriptors)
    pipeline: Sync and deployment results
    catalog: Catalog entries, loaded modules and the host render contract
    runtime: Sandbox documents and mount outcomes
    api: API endpoint request/response schemas

Usage:
    from schemas.settings_schema import SettingsSchema
    from schemas.pipeline import SyncResult, DeploymentResult
    from schemas.catalog import CatalogEntry, RenderableModule

Example:
    schema = SettingsSchema.parse({
        "points_per_dollar": {"type": "number", "min": 0, "max": 100, "default": 1}
    })
    schema.validate_settings({"points_per_dollar": 5})
"""

__all__ = [
    "SettingsSchema",
    "SyncResult",
    "SyncSummary",
    "DeploymentResult",
    "CatalogEntry",
    "LoadedModule",
    "RenderableModule",
    "SandboxDocument",
    "MountResult",
]

from schemas.settings_schema import SettingsSchema
from schemas.pipeline import SyncResult, SyncSummary, DeploymentResult
from schemas.catalog import CatalogEntry, LoadedModule, RenderableModule
from schemas.runtime import SandboxDocument, MountResult
