"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quota_engine.engine import QuotaEngine


def get_quota_engine(request: Request) -> QuotaEngine:
    """Engine facade attached to the application."""
    return request.app.state.quota_engine


async def get_db_session(
    engine: Annotated[QuotaEngine, Depends(get_quota_engine)],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with engine.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
Engine = Annotated[QuotaEngine, Depends(get_quota_engine)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
