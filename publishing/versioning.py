"""
Version labels and the append-only version ledger.

Each deployment snapshots the source's render artifacts into a
ModuleVersion row. (module_source_id, version) is unique, so two
concurrent deploys of the same label cannot both win: the losing insert
raises IntegrityError, which surfaces as ConflictError.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ValidationError, ConflictError, PersistenceError
from models.module_source import ModuleSource
from models.module_version import ModuleVersion

logger = logging.getLogger(__name__)

_SEMVER = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?$")

BUMP_TYPES = ("major", "minor", "patch")


@dataclass(frozen=True)
class ParsedVersion:
    major: int
    minor: int
    patch: int
    prerelease: Optional[str] = None

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.prerelease}" if self.prerelease else base


def parse_version(version: Optional[str]) -> Optional[ParsedVersion]:
    if not version:
        return None
    match = _SEMVER.match(version.strip())
    if not match:
        return None
    major, minor, patch, prerelease = match.groups()
    return ParsedVersion(int(major), int(minor), int(patch), prerelease)


def compare_versions(a: str, b: str) -> int:
    """
    Return -1, 0 or 1. Unparseable labels sort as 0.0.0; a prerelease
    sorts before the release with the same numbers.
    """
    va = parse_version(a) or ParsedVersion(0, 0, 0)
    vb = parse_version(b) or ParsedVersion(0, 0, 0)

    ta = (va.major, va.minor, va.patch)
    tb = (vb.major, vb.minor, vb.patch)
    if ta != tb:
        return 1 if ta > tb else -1

    if va.prerelease == vb.prerelease:
        return 0
    if va.prerelease is None:
        return 1
    if vb.prerelease is None:
        return -1
    return 1 if va.prerelease > vb.prerelease else -1


def increment_version(current: Optional[str], bump: str = "patch") -> str:
    parsed = parse_version(current)
    if parsed is None:
        return "1.0.0"

    if bump == "major":
        return f"{parsed.major + 1}.0.0"
    if bump == "minor":
        return f"{parsed.major}.{parsed.minor + 1}.0"
    return f"{parsed.major}.{parsed.minor}.{parsed.patch + 1}"


class VersionLedger:
    """Writes and reads immutable ModuleVersion snapshots."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create_version(
        self,
        source: ModuleSource,
        version: str,
        changelog: Optional[str] = None,
    ) -> ModuleVersion:
        """
        Snapshot the source's artifacts under ``version`` and commit.

        Raises:
            ValidationError: If the label is not semver
            ConflictError: If the label already exists for this source
            PersistenceError: On any other storage failure
        """
        source_id = str(source.id)
        source_slug = source.slug

        if parse_version(version) is None:
            raise ValidationError(
                "Version must be semver (major.minor.patch[-prerelease])",
                context={"module_source_id": source_id, "version": version},
            )

        snapshot = ModuleVersion(
            module_source_id=source.id,
            version=version,
            changelog=changelog,
            render_code=source.render_code,
            settings_schema=source.settings_schema,
            styles=source.styles,
            default_settings=source.default_settings,
        )

        try:
            self.db.add(snapshot)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                "Version already exists for this module",
                context={
                    "module_source_id": source_id,
                    "version": version,
                    "constraint": "module_source_id,version",
                },
                original_exception=e,
            )
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                "Failed to write module version",
                context={
                    "operation": "INSERT",
                    "table_name": ModuleVersion.__tablename__,
                    "module_source_id": source_id,
                },
                original_exception=e,
            )

        logger.info(f"Recorded version {version} for module {source_slug}")
        return snapshot

    async def list_versions(self, source_id: UUID) -> List[ModuleVersion]:
        result = await self.db.execute(
            select(ModuleVersion)
            .where(ModuleVersion.module_source_id == source_id)
            .order_by(ModuleVersion.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_version(self, version_id: UUID) -> Optional[ModuleVersion]:
        return await self.db.get(ModuleVersion, version_id)
