"""Propagation and notification dispatcher.

Every accepted transition is handed to ``dispatch`` inside the same
transaction that applied it. The dispatcher looks the transition up in a
fixed cascade table and applies the listed cross-entity effects, writing
notification events into the outbox as it goes. Transitions without an
entry are only logged.

Cascade table:

    Origin event                               Cascade effect
    -----------------------------------------  ------------------------------------------
    Bid -> accepted                            Tender -> awarded; source Issue -> in_progress;
                                               notify awarded contractor
    WorkProgressEntry -> draft / submitted     Tender awarded -> work_in_progress (first entry)
    WorkProgressEntry(completion) -> submitted Tender -> work_completed; notify department admins
    Assignment -> active (created)             Issue target fields + workflow_stage updated
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.config import settings
from civicflow.db import lock_row
from civicflow.errors import InvalidTransition, ReferentialViolation
from civicflow.models import (
    LIVE_BID_STATUSES,
    Assignment,
    AssignmentType,
    Bid,
    BidStatus,
    Issue,
    IssueStage,
    NotificationKind,
    ProgressStatus,
    ProgressType,
    Tender,
    TenderStage,
    WorkProgressEntry,
)

from .directory_service import directory_service
from .notification_service import notification_service
from .stages import (
    advance_tender,
    issue_rank,
    jump_issue_to_in_progress,
    raise_issue_to,
    require_tender_stage,
    utcnow,
)

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    """Entities whose transitions pass through the dispatcher."""

    ISSUE = "issue"
    ASSIGNMENT = "assignment"
    TENDER = "tender"
    BID = "bid"
    WORK_PROGRESS = "work_progress"
    DOCUMENT = "document"


@dataclass(frozen=True)
class TransitionEvent:
    """An accepted state transition."""

    entity_kind: EntityKind
    entity_id: int
    old_state: str | None
    new_state: str
    actor_id: int | None = None
    context: dict = field(default_factory=dict)

    def describe(self) -> str:
        return (
            f"{self.entity_kind.value} {self.entity_id}: "
            f"{self.old_state or '-'} -> {self.new_state}"
        )


# Issue stage implied by each delegation tier
STAGE_FOR_ASSIGNMENT: dict[AssignmentType, IssueStage] = {
    AssignmentType.ADMIN_TO_AREA: IssueStage.AREA_REVIEW,
    AssignmentType.AREA_TO_DEPARTMENT: IssueStage.DEPARTMENT_ASSIGNED,
    AssignmentType.DEPARTMENT_TO_CONTRACTOR: IssueStage.CONTRACTOR_ASSIGNED,
}


async def _load(db: AsyncSession, model, entity_id: int):
    entity = await db.get(model, entity_id)
    if entity is None:
        raise ReferentialViolation(f"{model.__name__} {entity_id} not found")
    return entity


async def _on_bid_accepted(db: AsyncSession, event: TransitionEvent) -> list[TransitionEvent]:
    bid: Bid = await _load(db, Bid, event.entity_id)
    tender: Tender = await _load(db, Tender, bid.tender_id)
    cascaded: list[TransitionEvent] = []

    # Tender -> awarded
    require_tender_stage(tender, TenderStage.BIDDING_CLOSED, TenderStage.UNDER_REVIEW)
    old_stage = tender.workflow_stage
    now = utcnow()
    tender.workflow_stage = TenderStage.AWARDED
    tender.awarded_contractor_id = bid.bidder_id
    tender.awarded_amount = bid.amount
    tender.awarded_at = now
    cascaded.append(
        TransitionEvent(EntityKind.TENDER, tender.id, old_stage.value, TenderStage.AWARDED.value, event.actor_id)
    )

    # Sibling bids
    if settings.sibling_bid_policy == "auto_reject":
        result = await db.execute(
            select(Bid).where(
                Bid.tender_id == tender.id,
                Bid.id != bid.id,
                Bid.status.in_(LIVE_BID_STATUSES),
            )
        )
        for sibling in result.scalars().all():
            sibling_old = sibling.status
            sibling.status = BidStatus.REJECTED
            sibling.rejection_reason = f"Tender awarded to bid {bid.id}"
            sibling.decided_at = now
            cascaded.append(
                TransitionEvent(EntityKind.BID, sibling.id, sibling_old.value, BidStatus.REJECTED.value, event.actor_id)
            )

    # Source issue -> in_progress, judged on the committed stage
    if tender.source_issue_id is not None:
        issue = await lock_row(db, Issue, tender.source_issue_id)
        if issue is None:
            raise ReferentialViolation(f"Issue {tender.source_issue_id} not found", rule="issue_exists")
        if issue_rank(issue.workflow_stage) <= issue_rank(IssueStage.IN_PROGRESS):
            issue_old = issue.workflow_stage
            issue.current_assignee_id = bid.bidder_id
            if jump_issue_to_in_progress(issue):
                cascaded.append(
                    TransitionEvent(
                        EntityKind.ISSUE, issue.id, issue_old.value, IssueStage.IN_PROGRESS.value, event.actor_id
                    )
                )
        else:
            logger.warning(
                f"Issue {issue.id} is already {issue.workflow_stage.value}; "
                f"award of tender {tender.id} leaves it unchanged"
            )

    await notification_service.emit(
        db,
        recipient_id=bid.bidder_id,
        kind=NotificationKind.BID_ACCEPTED,
        related_id=tender.id,
        related_type="tender",
        tender_title=tender.title,
        amount=bid.amount,
    )
    return cascaded


async def _on_progress_recorded(db: AsyncSession, event: TransitionEvent) -> list[TransitionEvent]:
    entry: WorkProgressEntry = await _load(db, WorkProgressEntry, event.entity_id)
    tender: Tender = await _load(db, Tender, entry.tender_id)
    cascaded: list[TransitionEvent] = []

    # First entry from the contractor starts the work
    if tender.workflow_stage == TenderStage.AWARDED:
        old_stage = advance_tender(tender, TenderStage.WORK_IN_PROGRESS)
        tender.work_started_at = utcnow()
        cascaded.append(
            TransitionEvent(
                EntityKind.TENDER, tender.id, old_stage.value, TenderStage.WORK_IN_PROGRESS.value, event.actor_id
            )
        )

    if entry.progress_type == ProgressType.COMPLETION and entry.status == ProgressStatus.SUBMITTED:
        if tender.workflow_stage != TenderStage.WORK_IN_PROGRESS:
            raise InvalidTransition(
                f"Tender {tender.id} is {tender.workflow_stage.value}; "
                f"completion can only be submitted while work is in progress"
            )
        old_stage = advance_tender(tender, TenderStage.WORK_COMPLETED)
        tender.work_completed_at = utcnow()
        cascaded.append(
            TransitionEvent(
                EntityKind.TENDER, tender.id, old_stage.value, TenderStage.WORK_COMPLETED.value, event.actor_id
            )
        )

        admins = await directory_service.department_admins(tender.department_id, db)
        if not admins:
            logger.warning(f"Department {tender.department_id} has no admins to notify for tender {tender.id}")
        for admin in admins:
            await notification_service.emit(
                db,
                recipient_id=admin.id,
                kind=NotificationKind.WORK_COMPLETION_SUBMITTED,
                related_id=tender.id,
                related_type="tender",
                tender_title=tender.title,
                entry_title=entry.title,
            )

    return cascaded


async def _on_assignment_created(db: AsyncSession, event: TransitionEvent) -> list[TransitionEvent]:
    assignment: Assignment = await _load(db, Assignment, event.entity_id)
    issue: Issue = await _load(db, Issue, assignment.issue_id)

    # Mirror the assignment target onto the issue
    if assignment.assigned_area_id is not None:
        issue.assigned_area_id = assignment.assigned_area_id
    if assignment.assigned_department_id is not None:
        issue.assigned_department_id = assignment.assigned_department_id
    if assignment.assigned_to is not None:
        issue.current_assignee_id = assignment.assigned_to

    target = STAGE_FOR_ASSIGNMENT[assignment.assignment_type]
    old_stage = raise_issue_to(issue, target)
    if old_stage == target:
        return []
    return [TransitionEvent(EntityKind.ISSUE, issue.id, old_stage.value, target.value, event.actor_id)]


CascadeHandler = Callable[[AsyncSession, TransitionEvent], Awaitable[list[TransitionEvent]]]

CASCADES: dict[tuple[EntityKind, str], CascadeHandler] = {
    (EntityKind.BID, BidStatus.ACCEPTED.value): _on_bid_accepted,
    (EntityKind.WORK_PROGRESS, ProgressStatus.DRAFT.value): _on_progress_recorded,
    (EntityKind.WORK_PROGRESS, ProgressStatus.SUBMITTED.value): _on_progress_recorded,
    (EntityKind.ASSIGNMENT, "active"): _on_assignment_created,
}


class PropagationDispatcher:
    """Applies the fixed cascade table to accepted transitions."""

    def __init__(self, cascades: dict[tuple[EntityKind, str], CascadeHandler] | None = None):
        self.cascades = cascades if cascades is not None else CASCADES

    async def dispatch(self, db: AsyncSession, event: TransitionEvent) -> list[TransitionEvent]:
        """
        Apply the cascade for one transition inside the caller's transaction.

        Any exception propagates so the caller's atomic unit rolls back.

        Args:
            db: Database session holding the originating transition
            event: Accepted transition

        Returns:
            The transitions applied as cascades
        """
        logger.info(f"Transition {event.describe()} by actor {event.actor_id}")

        handler = self.cascades.get((event.entity_kind, event.new_state))
        if handler is None:
            return []

        cascaded = await handler(db, event)
        await db.flush()

        for follow_up in cascaded:
            logger.info(f"Cascade {event.describe()} => {follow_up.describe()}")
        return cascaded


# Singleton instance
dispatcher = PropagationDispatcher()
