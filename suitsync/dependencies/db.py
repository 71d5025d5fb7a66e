# suitsync/dependencies/db.py
from typing import AsyncGenerator
from sqlmodel.ext.asyncio.session import AsyncSession
from suitsync.infrastructure.database import get_session


async def get_session_dep() -> AsyncGenerator[AsyncSession, None]:
    """One AsyncSession per request; repositories commit on it themselves."""
    async with get_session() as session:
        yield session
