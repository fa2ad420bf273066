"""
Request Dependencies
=====================

Current-user resolution shared by every router.

The caller's id arrives in the X-User-Id header; the profile comes from the
process-wide session context and is loaded from the directory only on a
cache miss.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cityflow.directory.domain import Profile
from cityflow.directory.infrastructure import SQLAlchemyDirectoryRepository
from cityflow.infrastructure.database import get_session
from cityflow.shared.session import session_context


async def get_directory_repository(
    session: AsyncSession = Depends(get_session)
) -> SQLAlchemyDirectoryRepository:
    """Directory repository bound to the request session."""
    return SQLAlchemyDirectoryRepository(session)


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    repository: SQLAlchemyDirectoryRepository = Depends(get_directory_repository)
) -> Profile:
    """
    Resolve the signed-in staff profile.

    Raises:
        HTTPException 401: header missing, or user unknown or inactive
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required"
        )

    profile = await session_context.resolve(x_user_id, repository.get_profile)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown or inactive user"
        )
    return profile


async def require_admin(current_user: Profile = Depends(get_current_user)) -> Profile:
    """Admin pages are limited to admins and super admins."""
    if current_user.role.value not in ("admin", "super_admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return current_user
