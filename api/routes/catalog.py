"""
Marketplace catalog endpoints
"""

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db
from core.exceptions import NotFoundError
from marketplace.catalog import CatalogService
from schemas.catalog import CatalogEntry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/catalog", tags=["Catalog"])


@router.get("", response_model=List[CatalogEntry])
async def list_catalog(
    category: Optional[str] = Query(None, description="Filter by category"),
    search: Optional[str] = Query(None, description="Search in name, description, category and slug"),
    db: AsyncSession = Depends(get_db),
):
    """Dynamic studio modules merged with the bundled catalog; dynamic wins on slug."""
    return await CatalogService(db).list_modules(category=category, search=search)


@router.get("/{id_or_slug}", response_model=CatalogEntry)
async def get_catalog_entry(id_or_slug: str, db: AsyncSession = Depends(get_db)):
    entry = await CatalogService(db).resolve(id_or_slug)
    if entry is None:
        raise NotFoundError("Module not found in catalog", context={"module_id": id_or_slug})
    return entry
