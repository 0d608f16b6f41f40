"""Bid endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor
from civicflow.schemas import (
    BidCreate,
    BidEvaluationCreate,
    BidEvaluationResponse,
    BidReject,
    BidResponse,
)
from civicflow.services.query_service import query_service
from civicflow.services.tender_workflow import tender_workflow

router = APIRouter()


@router.post("/tenders/{tender_id}/bids", response_model=BidResponse, status_code=status.HTTP_201_CREATED)
async def submit_bid(
    tender_id: int,
    data: BidCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Submit a bid on a tender open for bidding."""
    return await tender_workflow.submit_bid(db, tender_id, actor, **data.model_dump())


@router.get("/tenders/{tender_id}/bids", response_model=list[BidResponse])
async def list_bids(
    tender_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """All bids for tender managers; a contractor sees only their own."""
    return await query_service.list_bids(db, actor, tender_id)


@router.get("/bids/{bid_id}", response_model=BidResponse)
async def get_bid(
    bid_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await query_service.get_bid(db, actor, bid_id)


@router.post("/bids/{bid_id}/withdraw", response_model=BidResponse)
async def withdraw_bid(
    bid_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.withdraw_bid(db, bid_id, actor)


@router.post("/bids/{bid_id}/begin-evaluation", response_model=BidResponse)
async def begin_bid_evaluation(
    bid_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.begin_bid_evaluation(db, bid_id, actor)


@router.post(
    "/bids/{bid_id}/evaluations",
    response_model=BidEvaluationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def evaluate_bid(
    bid_id: int,
    data: BidEvaluationCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Record the actor's scores for a bid."""
    return await tender_workflow.evaluate_bid(db, bid_id, actor, **data.model_dump())


@router.get("/bids/{bid_id}/evaluations", response_model=list[BidEvaluationResponse])
async def list_evaluations(
    bid_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await query_service.list_evaluations(db, actor, bid_id)


@router.post("/bids/{bid_id}/reject", response_model=BidResponse)
async def reject_bid(
    bid_id: int,
    data: BidReject,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await tender_workflow.reject_bid(db, bid_id, actor, reason=data.reason)


@router.post("/bids/{bid_id}/accept", response_model=BidResponse)
async def accept_bid(
    bid_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept a bid and award its tender.

    Accepting an already-accepted bid is a no-op; accepting a second bid on
    the same tender answers 409 conflicting_state.
    """
    return await tender_workflow.accept_bid(db, bid_id, actor)
