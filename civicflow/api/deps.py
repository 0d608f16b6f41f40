"""Shared API dependencies."""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.db import get_db
from civicflow.errors import Unauthorized
from civicflow.models import Actor
from civicflow.services.directory_service import directory_service


async def get_actor(
    x_actor_id: int = Header(..., description="Authenticated actor ID set by the identity proxy"),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Resolve the acting actor from the ``X-Actor-Id`` header."""
    return await directory_service.resolve(x_actor_id, db)


async def get_platform_admin(actor: Actor = Depends(get_actor)) -> Actor:
    """Require a platform admin."""
    if not actor.is_platform_admin:
        raise Unauthorized("not_platform_admin")
    return actor
