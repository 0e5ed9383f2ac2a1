"""
Author-defined settings schema as a tagged union of field descriptors.

A module's ``settings_schema`` is an ordered mapping of field name to a
descriptor whose ``type`` selects the variant::

    {
        "headline": {"type": "text", "label": "Headline", "default": "Earn points"},
        "points_per_dollar": {"type": "number", "min": 0, "max": 100, "default": 1},
        "accent": {"type": "color", "default": "#1a73e8"},
        "layout": {"type": "select", "options": ["card", "banner"], "default": "card"},
        "show_balance": {"type": "toggle", "default": True},
    }

Settings are validated against the schema before any merge. Keys that the
schema does not declare are accepted untouched; overrides replace whole
top-level values and the schema only constrains the keys it knows.
"""

import re
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import SettingsValidationError

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


class _FieldBase(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    required: bool = False

    class Config:
        extra = "allow"

    def check(self, value: Any) -> Optional[str]:
        """Return a problem description, or None when the value is acceptable."""
        if value is None:
            return "value is required" if self.required else None
        return self._check_value(value)

    def _check_value(self, value: Any) -> Optional[str]:
        return None


class TextField(_FieldBase):
    type: Literal["text"]
    default: Optional[str] = None
    max_length: Optional[int] = Field(None, ge=1)

    def _check_value(self, value):
        if not isinstance(value, str):
            return "expected a string"
        if self.max_length is not None and len(value) > self.max_length:
            return f"longer than {self.max_length} characters"
        return None


class TextareaField(_FieldBase):
    type: Literal["textarea"]
    default: Optional[str] = None

    def _check_value(self, value):
        return None if isinstance(value, str) else "expected a string"


class NumberField(_FieldBase):
    type: Literal["number"]
    default: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None

    def _check_value(self, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return "expected a number"
        if self.min is not None and value < self.min:
            return f"must be >= {self.min:g}"
        if self.max is not None and value > self.max:
            return f"must be <= {self.max:g}"
        return None


class SelectOption(BaseModel):
    value: str
    label: Optional[str] = None


class SelectField(_FieldBase):
    type: Literal["select"]
    options: List[Union[SelectOption, str]] = Field(default_factory=list)
    default: Optional[str] = None

    def option_values(self) -> List[str]:
        return [o.value if isinstance(o, SelectOption) else o for o in self.options]

    def _check_value(self, value):
        allowed = self.option_values()
        if value not in allowed:
            return f"must be one of: {', '.join(allowed)}"
        return None


class ColorField(_FieldBase):
    type: Literal["color"]
    default: Optional[str] = None

    def _check_value(self, value):
        if not isinstance(value, str) or not _HEX_COLOR.match(value):
            return "expected a hex colour like #1a73e8"
        return None


class ToggleField(_FieldBase):
    type: Literal["toggle"]
    default: Optional[bool] = None

    def _check_value(self, value):
        return None if isinstance(value, bool) else "expected true or false"


class UrlField(_FieldBase):
    type: Literal["url"]
    default: Optional[str] = None

    def _check_value(self, value):
        if not isinstance(value, str) or not value.startswith(("https://", "http://", "/")):
            return "expected an absolute http(s) URL or a site path"
        return None


class ImageField(_FieldBase):
    type: Literal["image"]
    default: Optional[str] = None

    def _check_value(self, value):
        return None if isinstance(value, str) else "expected an image URL"


SettingsField = Annotated[
    Union[
        TextField,
        TextareaField,
        NumberField,
        SelectField,
        ColorField,
        ToggleField,
        UrlField,
        ImageField,
    ],
    Field(discriminator="type"),
]

_field_adapter = TypeAdapter(SettingsField)


class SettingsSchema:
    """Parsed, ordered settings schema of one module."""

    def __init__(self, fields: Optional[Dict[str, Any]] = None):
        self.fields: Dict[str, Any] = dict(fields or {})

    @classmethod
    def parse(cls, raw: Optional[Dict[str, Any]]) -> "SettingsSchema":
        """
        Build a schema from its stored JSON form.

        Raises:
            SettingsValidationError: If the schema is not a mapping or a
                descriptor has an unknown type or malformed attributes.
        """
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise SettingsValidationError(
                "Settings schema must be a mapping of field name to descriptor",
                context={"schema_type": type(raw).__name__},
            )

        fields: Dict[str, Any] = {}
        field_errors: Dict[str, str] = {}
        for name, descriptor in raw.items():
            try:
                fields[name] = _field_adapter.validate_python(descriptor)
            except PydanticValidationError as e:
                first = e.errors()[0]
                field_errors[name] = first.get("msg", "invalid descriptor")

        if field_errors:
            raise SettingsValidationError(
                "Settings schema contains invalid field descriptors",
                context={"field_errors": field_errors},
            )
        return cls(fields)

    def defaults(self) -> Dict[str, Any]:
        return {
            name: field.default
            for name, field in self.fields.items()
            if field.default is not None
        }

    def validate_settings(self, values: Optional[Dict[str, Any]], partial: bool = True) -> Dict[str, Any]:
        """
        Check settings against the schema and return them unchanged.

        With ``partial`` (the default) only provided keys are checked;
        otherwise required fields missing from ``values`` are errors too.
        """
        values = values or {}
        if not isinstance(values, dict):
            raise SettingsValidationError(
                "Settings must be a mapping",
                context={"settings_type": type(values).__name__},
            )

        field_errors: Dict[str, str] = {}
        for name, field in self.fields.items():
            if name in values:
                problem = field.check(values[name])
                if problem:
                    field_errors[name] = problem
            elif not partial and field.required and field.default is None:
                field_errors[name] = "value is required"

        if field_errors:
            raise SettingsValidationError(
                "Settings do not match the module's settings schema",
                context={"field_errors": field_errors},
            )
        return values

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: str) -> bool:
        return name in self.fields
