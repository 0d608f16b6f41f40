"""Issue and assignment endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.api.deps import get_actor
from civicflow.db import get_db
from civicflow.models import Actor, IssueStage
from civicflow.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    IssueAdvance,
    IssueCreate,
    IssueResolve,
    IssueResponse,
)
from civicflow.services.delegation_service import delegation_service
from civicflow.services.issue_workflow import issue_workflow
from civicflow.services.query_service import query_service

router = APIRouter()


# ============== Issues ==============


@router.post("/issues", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
async def report_issue(
    data: IssueCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Report a new issue."""
    return await issue_workflow.report_issue(db, actor, **data.model_dump())


@router.get("/issues", response_model=list[IssueResponse])
async def list_issues(
    stage: Optional[IssueStage] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """List issues visible to the actor, newest first."""
    return await query_service.list_issues(db, actor, stage=stage, skip=skip, limit=limit)


@router.get("/issues/{issue_id}", response_model=IssueResponse)
async def get_issue(
    issue_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await query_service.get_issue(db, actor, issue_id)


@router.post("/issues/{issue_id}/advance", response_model=IssueResponse)
async def advance_issue(
    issue_id: int,
    data: IssueAdvance,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Move an issue exactly one stage forward."""
    return await issue_workflow.advance(db, issue_id, actor, data.target)


@router.post("/issues/{issue_id}/start-work", response_model=IssueResponse)
async def start_issue_work(
    issue_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await issue_workflow.start_work(db, issue_id, actor)


@router.post("/issues/{issue_id}/submit-for-review", response_model=IssueResponse)
async def submit_issue_for_review(
    issue_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await issue_workflow.submit_for_review(db, issue_id, actor)


@router.post("/issues/{issue_id}/resolve", response_model=IssueResponse)
async def resolve_issue(
    issue_id: int,
    data: IssueResolve,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Resolve an issue under department review. Terminal."""
    return await issue_workflow.resolve(db, issue_id, actor, data.notes)


# ============== Assignments ==============


@router.get("/issues/{issue_id}/assignments", response_model=list[AssignmentResponse])
async def list_issue_assignments(
    issue_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delegation history of an issue."""
    return await query_service.list_assignments(db, actor, issue_id)


@router.post(
    "/issues/{issue_id}/assignments",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def delegate_issue(
    issue_id: int,
    data: AssignmentCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delegate an issue to the next tier of the chain."""
    return await delegation_service.delegate(
        db,
        issue_id,
        by=actor,
        assignment_type=data.assignment_type,
        to=data.assigned_to,
        area_id=data.area_id,
        department_id=data.department_id,
        notes=data.notes,
    )


@router.post("/assignments/{assignment_id}/complete", response_model=AssignmentResponse)
async def complete_assignment(
    assignment_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await delegation_service.complete_assignment(db, assignment_id, actor)


@router.post("/assignments/{assignment_id}/cancel", response_model=AssignmentResponse)
async def cancel_assignment(
    assignment_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await delegation_service.cancel_assignment(db, assignment_id, actor)
