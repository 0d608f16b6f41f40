"""Work progress tracker: contractor entries against awarded tenders."""

import logging
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.db import atomic, lock_row, scopes
from civicflow.errors import InvalidTransition, ReferentialViolation, ValidationError
from civicflow.models import (
    REVIEW_DECISIONS,
    Actor,
    ProgressStatus,
    ProgressType,
    Tender,
    TenderStage,
    WorkProgressEntry,
)

from .access_control import Action, ensure_authorized
from .dispatcher import EntityKind, TransitionEvent, dispatcher
from .stages import utcnow

logger = logging.getLogger(__name__)

# Tender stages in which the awarded contractor may file entries
RECORDING_STAGES = frozenset({TenderStage.AWARDED, TenderStage.WORK_IN_PROGRESS})

# Statuses a contractor may file an entry in
FILING_STATUSES = frozenset({ProgressStatus.DRAFT, ProgressStatus.SUBMITTED})

# Statuses from which a reviewer may decide
REVIEWABLE_STATUSES = frozenset({ProgressStatus.SUBMITTED, ProgressStatus.UNDER_REVIEW})

# Fields a contractor may change on a draft
DRAFT_FIELDS = frozenset(
    {
        "title",
        "description",
        "progress_percentage",
        "images",
        "documents",
        "location_notes",
        "quality_notes",
        "materials_used",
        "labor_details",
        "challenges_faced",
        "next_steps",
        "estimated_completion_date",
        "is_milestone",
        "milestone_name",
        "requires_verification",
        "extra",
    }
)

# Draft fields backed by NOT NULL columns
REQUIRED_DRAFT_FIELDS = frozenset(
    {
        "description",
        "progress_percentage",
        "images",
        "documents",
        "materials_used",
        "is_milestone",
        "requires_verification",
        "extra",
    }
)


def _check_percentage(value: int) -> None:
    if not 0 <= value <= 100:
        raise ValidationError(f"progress_percentage must be between 0 and 100, got {value}")


def _require_recording(tender: Tender) -> None:
    if tender.workflow_stage not in RECORDING_STAGES:
        raise InvalidTransition(
            f"Tender {tender.id} is {tender.workflow_stage.value}; progress is recorded "
            f"only while awarded or in progress"
        )


class WorkProgressService:
    """Records, revises and reviews contractor progress entries."""

    async def submit(
        self,
        db: AsyncSession,
        tender_id: int,
        contractor: Actor,
        progress_type: ProgressType,
        title: str,
        description: str,
        progress_percentage: int = 0,
        status: ProgressStatus = ProgressStatus.SUBMITTED,
        is_milestone: bool = False,
        milestone_name: str | None = None,
        images: list[str] | None = None,
        documents: list[str] | None = None,
        materials_used: list[str] | None = None,
        location_notes: str | None = None,
        quality_notes: str | None = None,
        labor_details: str | None = None,
        challenges_faced: str | None = None,
        next_steps: str | None = None,
        estimated_completion_date: date | None = None,
        requires_verification: bool = False,
        extra: dict[str, Any] | None = None,
    ) -> WorkProgressEntry:
        """
        File a progress entry as a draft or directly as submitted.

        The first entry on an awarded tender starts the work. A submitted
        completion entry moves the tender to work_completed and notifies the
        department admins.

        Args:
            db: Database session
            tender_id: Awarded tender the entry reports on
            contractor: Awarded contractor filing the entry
            progress_type: update, milestone, completion or issue
            title: Entry title, required
            description: Entry description, required
            progress_percentage: Overall completion, 0-100
            status: draft or submitted

        Returns:
            The stored entry
        """
        if not title or not title.strip():
            raise ValidationError("Progress entry title is required")
        if not description or not description.strip():
            raise ValidationError("Progress entry description is required")
        _check_percentage(progress_percentage)
        if status not in FILING_STATUSES:
            raise ValidationError(f"Entries are filed as draft or submitted, not {status.value}")

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)

                entry = WorkProgressEntry(
                    tender_id=tender.id,
                    contractor_id=contractor.id,
                    progress_type=progress_type,
                    title=title.strip(),
                    description=description,
                    progress_percentage=progress_percentage,
                    status=status,
                    is_milestone=is_milestone or progress_type == ProgressType.MILESTONE,
                    milestone_name=milestone_name,
                    images=list(images or []),
                    documents=list(documents or []),
                    materials_used=list(materials_used or []),
                    location_notes=location_notes,
                    quality_notes=quality_notes,
                    labor_details=labor_details,
                    challenges_faced=challenges_faced,
                    next_steps=next_steps,
                    estimated_completion_date=estimated_completion_date,
                    requires_verification=requires_verification,
                    extra=dict(extra or {}),
                )
                ensure_authorized(contractor, entry, Action.PROGRESS_SUBMIT, tender=tender)

                _require_recording(tender)

                db.add(entry)
                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(EntityKind.WORK_PROGRESS, entry.id, None, status.value, contractor.id),
                )

        logger.info(
            f"Progress entry {entry.id} ({progress_type.value}, {status.value}) filed on tender {tender_id} "
            f"by actor {contractor.id}: {progress_percentage}%"
        )
        return entry

    async def update_draft(
        self,
        db: AsyncSession,
        entry_id: int,
        contractor: Actor,
        **changes,
    ) -> WorkProgressEntry:
        """
        Edit a draft entry in place.

        Raises:
            ValidationError: For unknown fields or an out-of-range percentage
            InvalidTransition: If the entry is no longer a draft
        """
        unknown = set(changes) - DRAFT_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if changes.get("progress_percentage") is not None:
            _check_percentage(changes["progress_percentage"])
        if "title" in changes and (not changes["title"] or not changes["title"].strip()):
            raise ValidationError("Progress entry title is required")
        cleared = sorted(f for f in REQUIRED_DRAFT_FIELDS & set(changes) if changes[f] is None)
        if cleared:
            raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")

        tender_id = await self._tender_id_of(db, entry_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                entry = await lock_row(db, WorkProgressEntry, entry_id)
                ensure_authorized(contractor, entry, Action.PROGRESS_UPDATE, tender=tender)

                if entry.status != ProgressStatus.DRAFT:
                    raise InvalidTransition(f"Progress entry {entry.id} is {entry.status.value}; only drafts change")

                for field, value in changes.items():
                    setattr(entry, field, value)
                if entry.progress_type == ProgressType.MILESTONE:
                    entry.is_milestone = True
                await db.flush()

        logger.info(f"Draft progress entry {entry_id} updated by actor {contractor.id}: {sorted(changes)}")
        return entry

    async def submit_draft(self, db: AsyncSession, entry_id: int, contractor: Actor) -> WorkProgressEntry:
        """draft -> submitted, with the same cascades as filing it submitted."""
        tender_id = await self._tender_id_of(db, entry_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                entry = await lock_row(db, WorkProgressEntry, entry_id)
                ensure_authorized(contractor, entry, Action.PROGRESS_UPDATE, tender=tender)

                if entry.status != ProgressStatus.DRAFT:
                    raise InvalidTransition(f"Progress entry {entry.id} is {entry.status.value}, not a draft")
                _require_recording(tender)

                entry.status = ProgressStatus.SUBMITTED
                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(
                        EntityKind.WORK_PROGRESS,
                        entry.id,
                        ProgressStatus.DRAFT.value,
                        ProgressStatus.SUBMITTED.value,
                        contractor.id,
                    ),
                )

        logger.info(f"Progress entry {entry.id} submitted by actor {contractor.id}")
        return entry

    async def start_review(self, db: AsyncSession, entry_id: int, reviewer: Actor) -> WorkProgressEntry:
        """submitted -> under_review."""
        tender_id = await self._tender_id_of(db, entry_id)

        async with atomic(db):
            tender = await self._lock_tender(db, tender_id)
            entry = await lock_row(db, WorkProgressEntry, entry_id)
            ensure_authorized(reviewer, entry, Action.PROGRESS_REVIEW, tender=tender)

            if entry.status != ProgressStatus.SUBMITTED:
                raise InvalidTransition(f"Progress entry {entry.id} is {entry.status.value}, not submitted")

            entry.status = ProgressStatus.UNDER_REVIEW
            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(
                    EntityKind.WORK_PROGRESS,
                    entry.id,
                    ProgressStatus.SUBMITTED.value,
                    ProgressStatus.UNDER_REVIEW.value,
                    reviewer.id,
                ),
            )

        return entry

    async def review(
        self,
        db: AsyncSession,
        entry_id: int,
        reviewer: Actor,
        decision: ProgressStatus,
        notes: str | None = None,
    ) -> WorkProgressEntry:
        """
        Record a review decision on a submitted entry. Decisions are final.

        Args:
            db: Database session
            entry_id: Entry under review
            reviewer: Department admin of the tender's department
            decision: approved, rejected or requires_changes
            notes: Reviewer notes

        Returns:
            The reviewed entry
        """
        if decision not in REVIEW_DECISIONS:
            raise ValidationError(f"{decision.value} is not a review decision")

        tender_id = await self._tender_id_of(db, entry_id)

        async with atomic(db):
            tender = await self._lock_tender(db, tender_id)
            entry = await lock_row(db, WorkProgressEntry, entry_id)
            ensure_authorized(reviewer, entry, Action.PROGRESS_REVIEW, tender=tender)

            if entry.status not in REVIEWABLE_STATUSES:
                raise InvalidTransition(
                    f"Progress entry {entry.id} is {entry.status.value} and cannot be reviewed"
                )

            old_status = entry.status
            entry.status = decision
            entry.verified_by = reviewer.id
            entry.verified_at = utcnow()
            entry.verification_notes = notes
            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(EntityKind.WORK_PROGRESS, entry.id, old_status.value, decision.value, reviewer.id),
            )

        logger.info(f"Progress entry {entry.id} reviewed by actor {reviewer.id}: {decision.value}")
        return entry

    async def list_entries(self, db: AsyncSession, tender_id: int) -> list[WorkProgressEntry]:
        """All entries on a tender, oldest first."""
        result = await db.execute(
            select(WorkProgressEntry)
            .where(WorkProgressEntry.tender_id == tender_id)
            .order_by(WorkProgressEntry.created_at, WorkProgressEntry.id)
        )
        return list(result.scalars().all())

    async def list_milestones(self, db: AsyncSession, tender_id: int) -> list[WorkProgressEntry]:
        result = await db.execute(
            select(WorkProgressEntry)
            .where(
                WorkProgressEntry.tender_id == tender_id,
                WorkProgressEntry.is_milestone == True,  # noqa: E712
            )
            .order_by(WorkProgressEntry.created_at, WorkProgressEntry.id)
        )
        return list(result.scalars().all())

    async def _lock_tender(self, db: AsyncSession, tender_id: int) -> Tender:
        tender = await lock_row(db, Tender, tender_id)
        if tender is None:
            raise ReferentialViolation(f"Tender {tender_id} not found", rule="tender_exists")
        return tender

    async def _tender_id_of(self, db: AsyncSession, entry_id: int) -> int:
        result = await db.execute(select(WorkProgressEntry.tender_id).where(WorkProgressEntry.id == entry_id))
        tender_id = result.scalar_one_or_none()
        if tender_id is None:
            raise ReferentialViolation(f"Progress entry {entry_id} not found", rule="progress_entry_exists")
        return tender_id


# Singleton instance
work_progress_service = WorkProgressService()
