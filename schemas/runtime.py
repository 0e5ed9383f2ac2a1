"""
Pydantic schemas for sandbox documents and mount outcomes
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from models.base import RenderStatus


class CodeFinding(BaseModel):
    """A forbidden host-access pattern found in module code"""
    rule: str
    pattern: str
    line: int
    message: str


class TranspileResult(BaseModel):
    code: str
    default_export: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class SandboxDocument(BaseModel):
    """Self-contained HTML document for one module instance, with its iframe attributes"""
    module_id: str
    html: str
    iframe_attributes: Dict[str, str] = Field(default_factory=dict)
    config: Dict[str, Any] = Field(default_factory=dict)


class MountResult(BaseModel):
    """
    Outcome of preparing one module for a page.

    Exactly one of ``document`` or ``placeholder_html`` is set.
    """
    module_id: str
    name: Optional[str] = None
    status: RenderStatus
    document: Optional[SandboxDocument] = None
    placeholder_html: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    duration_ms: int = 0

    class Config:
        use_enum_values = True

    @property
    def ok(self) -> bool:
        return self.status == RenderStatus.OK.value
