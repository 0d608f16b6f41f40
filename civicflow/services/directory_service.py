"""Directory service: actors, areas, departments and who supervises what."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.errors import ReferentialViolation
from civicflow.models import Actor, ActorRole, Area, Department

logger = logging.getLogger(__name__)


class DirectoryService:
    """Resolves actors and the administrative relationships between them."""

    async def resolve(self, actor_id: int, db: AsyncSession) -> Actor:
        """
        Resolve an actor by ID.

        Args:
            actor_id: Actor ID supplied by the identity provider
            db: Database session

        Returns:
            Active actor

        Raises:
            ReferentialViolation: If the actor is unknown or deactivated
        """
        actor = await db.get(Actor, actor_id)
        if actor is None or not actor.is_active:
            raise ReferentialViolation(f"Actor {actor_id} not found or inactive", rule="actor_exists")
        return actor

    async def get_area(self, area_id: int, db: AsyncSession, require_active: bool = True) -> Area:
        """Get an area, optionally requiring it to be active."""
        area = await db.get(Area, area_id)
        if area is None:
            raise ReferentialViolation(f"Area {area_id} not found", rule="area_exists")
        if require_active and not area.is_active:
            raise ReferentialViolation(f"Area {area.code} is inactive", rule="area_active")
        return area

    async def get_department(
        self,
        department_id: int,
        db: AsyncSession,
        require_active: bool = True,
    ) -> Department:
        """Get a department, optionally requiring it to be active."""
        department = await db.get(Department, department_id)
        if department is None:
            raise ReferentialViolation(f"Department {department_id} not found", rule="department_exists")
        if require_active and not department.is_active:
            raise ReferentialViolation(
                f"Department {department.code} is inactive",
                rule="department_active",
            )
        return department

    async def department_admins(self, department_id: int, db: AsyncSession) -> list[Actor]:
        """All active department admins of a department."""
        result = await db.execute(
            select(Actor)
            .where(
                Actor.role == ActorRole.DEPARTMENT_ADMIN,
                Actor.assigned_department_id == department_id,
                Actor.is_active == True,  # noqa: E712
            )
            .order_by(Actor.id)
        )
        return list(result.scalars().all())

    async def area_supervisors(self, area_id: int, db: AsyncSession) -> list[Actor]:
        """All active supervisors of an area."""
        result = await db.execute(
            select(Actor)
            .where(
                Actor.role == ActorRole.AREA_SUPERVISOR,
                Actor.assigned_area_id == area_id,
                Actor.is_active == True,  # noqa: E712
            )
            .order_by(Actor.id)
        )
        return list(result.scalars().all())

    async def list_areas(self, db: AsyncSession, active_only: bool = True) -> list[Area]:
        query = select(Area).order_by(Area.code)
        if active_only:
            query = query.where(Area.is_active == True)  # noqa: E712
        result = await db.execute(query)
        return list(result.scalars().all())

    async def list_departments(self, db: AsyncSession, active_only: bool = True) -> list[Department]:
        query = select(Department).order_by(Department.code)
        if active_only:
            query = query.where(Department.is_active == True)  # noqa: E712
        result = await db.execute(query)
        return list(result.scalars().all())


# Singleton instance
directory_service = DirectoryService()
