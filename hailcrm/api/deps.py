from typing import AsyncGenerator

from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hailcrm.core.rbac.cache import PermissionCache, get_permission_cache
from hailcrm.db.session import get_sessionmaker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session dependency."""
    session = get_sessionmaker()()
    try:
        yield session
    except Exception:
        if session.in_transaction():
            await session.rollback()
        raise
    finally:
        await session.close()


def get_cache() -> PermissionCache:
    """Permission cache dependency (the process-wide cache)."""
    return get_permission_cache()


def get_current_user_id(request: Request) -> int:
    """Get the authenticated user id placed on the request by the auth layer."""
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return int(user_id)
