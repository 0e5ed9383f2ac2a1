"""
Shared FastAPI dependencies
"""

from typing import AsyncGenerator, Optional

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_session
from core.exceptions import AuthorizationError


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


async def require_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")) -> None:
    """Guard for authoring/admin routes. Open when no API_KEY is configured."""
    if settings.API_KEY and x_api_key != settings.API_KEY:
        raise AuthorizationError("Missing or invalid API key")
