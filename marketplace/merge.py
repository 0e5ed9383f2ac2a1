"""
Override-wins settings merge.
"""

from typing import Any, Dict, Optional

from schemas.settings_schema import SettingsSchema


def merge_settings(
    defaults: Optional[Dict[str, Any]],
    overrides: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Return a new mapping of ``defaults`` with every top-level key of
    ``overrides`` replacing the default's whole value.

    Nested mappings are not merged field by field. Neither input is
    mutated; ``None`` counts as an empty mapping.
    """
    merged = dict(defaults or {})
    merged.update(overrides or {})
    return merged


def module_defaults(
    default_settings: Optional[Dict[str, Any]],
    settings_schema: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """The module's declared defaults, or the schema's field defaults when it declares none."""
    if default_settings:
        return dict(default_settings)
    return SettingsSchema.parse(settings_schema).defaults()
