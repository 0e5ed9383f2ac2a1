"""
Sandbox Engine - prepares a page's modules for isolated rendering.

Each module is transpiled, scanned and rendered into its sandbox document
in a worker thread under a bounded wait. Whatever goes wrong with one
module (bad code, forbidden host access, a hang) is contained into that
module's placeholder; the rest of the page is unaffected.
"""

import asyncio
import time
import logging
from typing import List, Optional, Sequence

from core.config import settings
from core.exceptions import ModuleServiceError, MountTimeoutError, RenderError
from models.base import RenderStatus
from runtime.policy import enforce_policy
from runtime.sandbox import SandboxDocumentBuilder, render_placeholder
from runtime.transpiler import transpile
from schemas.catalog import RenderableModule
from schemas.runtime import MountResult, SandboxDocument

logger = logging.getLogger(__name__)

__all__ = ["SandboxEngine", "render_placeholder"]


class SandboxEngine:

    def __init__(
        self,
        builder: Optional[SandboxDocumentBuilder] = None,
        timeout: Optional[float] = None,
        reject_unsafe: Optional[bool] = None,
    ):
        self.builder = builder or SandboxDocumentBuilder()
        self.timeout = timeout if timeout is not None else settings.MOUNT_TIMEOUT_SECONDS
        self.reject_unsafe = reject_unsafe

    def prepare(self, module: RenderableModule, site_id: str) -> SandboxDocument:
        """
        Synchronous preparation of one module: transpile, policy check, render.

        Raises:
            TranspileError: If the code falls outside the supported subset
            UnsafeCodeError: If the code references forbidden host APIs
        """
        transpiled = transpile(module.code, filename=f"{module.id}.tsx")
        enforce_policy(transpiled.code, module_id=module.id, reject=self.reject_unsafe)
        for warning in transpiled.warnings:
            logger.debug(f"{module.id}: {warning}")
        return self.builder.build(module, site_id, transpiled=transpiled)

    def _failed(
        self,
        module: RenderableModule,
        status: RenderStatus,
        error: ModuleServiceError,
        started: float,
    ) -> MountResult:
        logger.error(
            f"Module {module.id} failed to mount on site {error.context.get('site_id')}: {error.message}",
            extra={"error_context": error.to_dict()},
        )
        return MountResult(
            module_id=module.id,
            name=module.name,
            status=status,
            placeholder_html=render_placeholder(module.id, module.name, error.message),
            error=error.message,
            error_code=error.error_code,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )

    async def mount(self, module: RenderableModule, site_id: str) -> MountResult:
        """
        Prepare one module, containing every failure into a placeholder.

        Never raises for render problems; the returned status is ``ok``,
        ``error`` or ``timeout``.
        """
        started = time.perf_counter()
        try:
            document = await asyncio.wait_for(
                asyncio.to_thread(self.prepare, module, site_id),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            error = MountTimeoutError(
                f"Module did not mount within {self.timeout}s",
                context={"module_id": module.id, "site_id": site_id, "timeout_seconds": self.timeout},
            )
            return self._failed(module, RenderStatus.TIMEOUT, error, started)
        except RenderError as e:
            e.context.setdefault("site_id", site_id)
            return self._failed(module, RenderStatus.ERROR, e, started)
        except Exception as e:
            error = RenderError(
                "Module could not be prepared",
                context={"module_id": module.id, "site_id": site_id},
                original_exception=e,
            )
            return self._failed(module, RenderStatus.ERROR, error, started)

        return MountResult(
            module_id=module.id,
            name=module.name,
            status=RenderStatus.OK,
            document=document,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )

    async def mount_page(self, site_id: str, modules: Sequence[RenderableModule]) -> List[MountResult]:
        """Mount every module concurrently. Results keep the input order."""
        results = await asyncio.gather(*(self.mount(module, site_id) for module in modules))

        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Mounted {len(results) - failed}/{len(results)} module(s) for site {site_id}")
        return list(results)
