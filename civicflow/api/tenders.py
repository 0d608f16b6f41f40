"""Tender endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor, TenderStage
from civicflow.schemas import TenderCreate, TenderResponse, TenderVerify
from civicflow.services.query_service import query_service
from civicflow.services.tender_workflow import tender_workflow

router = APIRouter()


@router.post("/tenders", response_model=TenderResponse, status_code=status.HTTP_201_CREATED)
async def create_tender(
    data: TenderCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create a tender for a department, optionally raised from an issue."""
    return await tender_workflow.create_tender(db, actor, **data.model_dump())


@router.get("/tenders", response_model=list[TenderResponse])
async def list_tenders(
    stage: Optional[TenderStage] = None,
    department_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List tenders visible to the actor, newest first."""
    return await query_service.list_tenders(
        db, actor, stage=stage, department_id=department_id, skip=skip, limit=limit
    )


@router.get("/tenders/{tender_id}", response_model=TenderResponse)
async def get_tender(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await query_service.get_tender(db, actor, tender_id)


@router.post("/tenders/{tender_id}/open-bidding", response_model=TenderResponse)
async def open_bidding(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.open_bidding(db, tender_id, actor)


@router.post("/tenders/{tender_id}/close-bidding", response_model=TenderResponse)
async def close_bidding(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.close_bidding(db, tender_id, actor)


@router.post("/tenders/{tender_id}/start-review", response_model=TenderResponse)
async def start_review(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.start_review(db, tender_id, actor)


@router.post("/tenders/{tender_id}/start-work", response_model=TenderResponse)
async def start_work(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Start work on an awarded tender without waiting for a progress entry."""
    return await tender_workflow.start_work(db, tender_id, actor)


@router.post("/tenders/{tender_id}/verify", response_model=TenderResponse)
async def verify_tender(
    tender_id: int,
    data: TenderVerify,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Verify completed work."""
    return await tender_workflow.verify(db, tender_id, actor, notes=data.notes)


@router.post("/tenders/{tender_id}/close", response_model=TenderResponse)
async def close_tender(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.close(db, tender_id, actor)
