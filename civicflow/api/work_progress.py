"""Work progress endpoints."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor
from civicflow.schemas import ProgressCreate, ProgressResponse, ProgressReview, ProgressUpdate
from civicflow.services.query_service import query_service
from civicflow.services.work_progress_service import work_progress_service

router = APIRouter()


@router.post(
    "/tenders/{tender_id}/progress",
    response_model=ProgressResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_progress(
    tender_id: int,
    data: ProgressCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """File a progress entry as the awarded contractor."""
    return await work_progress_service.submit(db, tender_id, actor, **data.model_dump())


@router.get("/tenders/{tender_id}/progress", response_model=list[ProgressResponse])
async def list_progress(
    tender_id: int,
    milestones_only: bool = Query(False),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await query_service.list_progress(db, actor, tender_id, milestones_only=milestones_only)


@router.patch("/progress/{entry_id}", response_model=ProgressResponse)
async def update_draft(
    entry_id: int,
    data: ProgressUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Edit a draft entry."""
    return await work_progress_service.update_draft(db, entry_id, actor, **data.model_dump(exclude_unset=True))


@router.post("/progress/{entry_id}/submit", response_model=ProgressResponse)
async def submit_draft(
    entry_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await work_progress_service.submit_draft(db, entry_id, actor)


@router.post("/progress/{entry_id}/start-review", response_model=ProgressResponse)
async def start_progress_review(
    entry_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await work_progress_service.start_review(db, entry_id, actor)


@router.post("/progress/{entry_id}/review", response_model=ProgressResponse)
async def review_progress(
    entry_id: int,
    data: ProgressReview,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Approve, reject or request changes on a submitted entry."""
    return await work_progress_service.review(db, entry_id, actor, data.decision, notes=data.notes)
