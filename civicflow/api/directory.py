"""Directory endpoints: who is who, and which areas and departments exist."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor
from civicflow.schemas import ActorResponse, AreaResponse, DepartmentResponse
from civicflow.services.directory_service import directory_service

router = APIRouter()


@router.get("/me", response_model=ActorResponse)
async def whoami(actor: Actor = Depends(get_actor)):
    """The acting actor."""
    return actor


@router.get("/areas", response_model=list[AreaResponse])
async def list_areas(
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await directory_service.list_areas(db, active_only=not include_inactive)


@router.get("/departments", response_model=list[DepartmentResponse])
async def list_departments(
    include_inactive: bool = Query(False),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await directory_service.list_departments(db, active_only=not include_inactive)


@router.get("/departments/{department_id}/admins", response_model=list[ActorResponse])
async def list_department_admins(
    department_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await directory_service.get_department(department_id, db, require_active=False)
    return await directory_service.department_admins(department_id, db)


@router.get("/areas/{area_id}/supervisors", response_model=list[ActorResponse])
async def list_area_supervisors(
    area_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    await directory_service.get_area(area_id, db, require_active=False)
    return await directory_service.area_supervisors(area_id, db)
