"""Tests for contractor work progress entries."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from civicflow.errors import InvalidTransition, ReferentialViolation, Unauthorized, ValidationError
from civicflow.models import (
    NotificationEvent,
    NotificationKind,
    ProgressStatus,
    ProgressType,
    TenderStage,
)
from civicflow.services.tender_workflow import tender_workflow
from civicflow.services.work_progress_service import work_progress_service


async def _completion_notices(db) -> list[NotificationEvent]:
    result = await db.execute(
        select(NotificationEvent)
        .where(NotificationEvent.kind == NotificationKind.WORK_COMPLETION_SUBMITTED)
        .order_by(NotificationEvent.recipient_id)
    )
    return list(result.scalars().all())


async def _complete(flow, tender_id: int, status=ProgressStatus.SUBMITTED):
    return await work_progress_service.submit(
        flow.db, tender_id, flow.w.contractor, ProgressType.COMPLETION,
        "Work finished", "Resurfacing done, lines repainted", progress_percentage=100, status=status,
    )


class TestRecording:

    @pytest.mark.asyncio
    async def test_first_entry_starts_the_work(self, flow, world):
        tender, _ = await flow.awarded_tender()
        assert tender.work_started_at is None

        entry = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.UPDATE,
            "Mobilised", "Crew and equipment on site", progress_percentage=5,
            images=["https://storage.example.org/site-1.jpg"], materials_used=["asphalt"],
        )

        assert entry.status == ProgressStatus.SUBMITTED
        assert entry.images == ["https://storage.example.org/site-1.jpg"]
        assert tender.workflow_stage == TenderStage.WORK_IN_PROGRESS
        assert tender.work_started_at is not None

    @pytest.mark.asyncio
    async def test_draft_also_starts_the_work(self, flow, world):
        tender, _ = await flow.awarded_tender()

        entry = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.UPDATE,
            "Planning", "Traffic plan drafted", status=ProgressStatus.DRAFT,
        )

        assert entry.status == ProgressStatus.DRAFT
        assert tender.workflow_stage == TenderStage.WORK_IN_PROGRESS

    @pytest.mark.asyncio
    async def test_later_entries_leave_stage_alone(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.ISSUE,
            "Water main found", "Utility conflict under lane 2", progress_percentage=40,
            challenges_faced="Waiting on utility locate",
        )

        assert tender.workflow_stage == TenderStage.WORK_IN_PROGRESS
        assert len(await work_progress_service.list_entries(flow.db, tender.id)) == 2

    @pytest.mark.asyncio
    async def test_milestones(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        milestone = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.MILESTONE,
            "Base course laid", "Lanes 1 and 2 done", progress_percentage=50, milestone_name="Base course",
        )

        assert milestone.is_milestone is True
        entries = await work_progress_service.list_entries(flow.db, tender.id)
        milestones = await work_progress_service.list_milestones(flow.db, tender.id)
        assert len(entries) == 2
        assert [m.id for m in milestones] == [milestone.id]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percentage", [-1, 101])
    async def test_percentage_range(self, flow, world, percentage):
        tender, _ = await flow.awarded_tender()

        with pytest.raises(ValidationError):
            await work_progress_service.submit(
                flow.db, tender.id, world.contractor, ProgressType.UPDATE,
                "Bad", "Out of range", progress_percentage=percentage,
            )

    @pytest.mark.asyncio
    async def test_entries_cannot_be_filed_already_reviewed(self, flow, world):
        tender, _ = await flow.awarded_tender()

        with pytest.raises(ValidationError):
            await work_progress_service.submit(
                flow.db, tender.id, world.contractor, ProgressType.UPDATE,
                "Sneaky", "Self-approved", status=ProgressStatus.APPROVED,
            )

    @pytest.mark.asyncio
    async def test_only_awarded_contractor_records(self, flow, world):
        tender, _ = await flow.awarded_tender()

        with pytest.raises(Unauthorized) as exc_info:
            await work_progress_service.submit(
                flow.db, tender.id, world.contractor2, ProgressType.UPDATE, "Hello", "Not my tender",
            )

        assert exc_info.value.rule == "not_awarded_contractor"
        await flow.recover()
        assert tender.workflow_stage == TenderStage.AWARDED

    @pytest.mark.asyncio
    async def test_nothing_recorded_before_award(self, flow, world):
        tender, _ = await flow.tender_in_review()

        with pytest.raises(Unauthorized):
            await work_progress_service.submit(
                flow.db, tender.id, world.contractor, ProgressType.UPDATE, "Early", "Before award",
            )

    @pytest.mark.asyncio
    async def test_unknown_tender(self, db, world):
        with pytest.raises(ReferentialViolation):
            await work_progress_service.submit(
                db, 1234, world.contractor, ProgressType.UPDATE, "Ghost", "No such tender",
            )


class TestCompletion:

    @pytest.mark.asyncio
    async def test_completion_notifies_every_department_admin(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        await _complete(flow, tender.id)

        assert tender.workflow_stage == TenderStage.WORK_COMPLETED
        assert tender.work_completed_at is not None

        notices = await _completion_notices(flow.db)
        assert {n.recipient_id for n in notices} == {world.dept_admin.id, world.dept_admin2.id}
        assert all(n.related_id == tender.id for n in notices)
        assert world.lighting_admin.id not in {n.recipient_id for n in notices}

    @pytest.mark.asyncio
    async def test_completion_straight_after_award(self, flow, world):
        tender, _ = await flow.awarded_tender()

        await _complete(flow, tender.id)

        assert tender.workflow_stage == TenderStage.WORK_COMPLETED
        assert tender.work_started_at is not None

    @pytest.mark.asyncio
    async def test_draft_completion_waits_for_submission(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        draft = await _complete(flow, tender.id, status=ProgressStatus.DRAFT)
        assert tender.workflow_stage == TenderStage.WORK_IN_PROGRESS
        assert await _completion_notices(flow.db) == []

        await work_progress_service.submit_draft(flow.db, draft.id, world.contractor)

        assert draft.status == ProgressStatus.SUBMITTED
        assert tender.workflow_stage == TenderStage.WORK_COMPLETED
        assert len(await _completion_notices(flow.db)) == 2

    @pytest.mark.asyncio
    async def test_no_entries_after_completion(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        await _complete(flow, tender.id)

        with pytest.raises(InvalidTransition):
            await work_progress_service.submit(
                flow.db, tender.id, world.contractor, ProgressType.UPDATE, "Touch-up", "One more thing",
            )

    @pytest.mark.asyncio
    async def test_verify_and_close(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        await _complete(flow, tender.id)

        await tender_workflow.verify(flow.db, tender.id, world.dept_admin2, "Inspected on site")
        assert tender.workflow_stage == TenderStage.VERIFIED
        assert tender.verified_by == world.dept_admin2.id
        assert tender.verification_notes == "Inspected on site"

        await tender_workflow.close(flow.db, tender.id, world.dept_admin)
        assert tender.workflow_stage == TenderStage.CLOSED
        assert tender.closed_at is not None
        assert tender.awarded_amount == Decimal("45000")

    @pytest.mark.asyncio
    async def test_leftover_draft_cannot_be_submitted_after_close(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        draft = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.UPDATE,
            "Line painting", "Second coat pending", status=ProgressStatus.DRAFT,
        )
        await _complete(flow, tender.id)
        await tender_workflow.verify(flow.db, tender.id, world.dept_admin, "Inspected on site")
        await tender_workflow.close(flow.db, tender.id, world.dept_admin)

        with pytest.raises(InvalidTransition, match="closed"):
            await work_progress_service.submit_draft(flow.db, draft.id, world.contractor)

        await flow.recover()
        assert draft.status == ProgressStatus.DRAFT
        assert tender.workflow_stage == TenderStage.CLOSED


class TestDrafts:

    @pytest.mark.asyncio
    async def test_update_draft(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        draft = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.UPDATE,
            "Week 2", "Draft", progress_percentage=30, status=ProgressStatus.DRAFT,
        )

        await work_progress_service.update_draft(
            flow.db, draft.id, world.contractor, title="Week 2 report", progress_percentage=35,
            quality_notes="Compaction tests passed",
        )

        assert draft.title == "Week 2 report"
        assert draft.progress_percentage == 35
        assert draft.quality_notes == "Compaction tests passed"

    @pytest.mark.asyncio
    async def test_update_draft_validation(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        draft = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.UPDATE,
            "Week 2", "Draft", status=ProgressStatus.DRAFT,
        )

        with pytest.raises(ValidationError):
            await work_progress_service.update_draft(flow.db, draft.id, world.contractor, status="approved")
        with pytest.raises(ValidationError):
            await work_progress_service.update_draft(flow.db, draft.id, world.contractor, progress_percentage=120)
        with pytest.raises(ValidationError):
            await work_progress_service.update_draft(flow.db, draft.id, world.contractor, description=None)

    @pytest.mark.asyncio
    async def test_submitted_entries_are_not_editable(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        entries = await work_progress_service.list_entries(flow.db, tender.id)

        with pytest.raises(InvalidTransition):
            await work_progress_service.update_draft(flow.db, entries[0].id, world.contractor, title="Edited")

    @pytest.mark.asyncio
    async def test_other_contractor_cannot_edit(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        draft = await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.UPDATE,
            "Week 3", "Draft", status=ProgressStatus.DRAFT,
        )

        with pytest.raises(Unauthorized):
            await work_progress_service.update_draft(flow.db, draft.id, world.contractor2, title="Mine now")


class TestReview:

    @pytest.mark.asyncio
    async def test_review_records_decision(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        entry = (await work_progress_service.list_entries(flow.db, tender.id))[0]

        await work_progress_service.start_review(flow.db, entry.id, world.dept_admin)
        assert entry.status == ProgressStatus.UNDER_REVIEW

        await work_progress_service.review(
            flow.db, entry.id, world.dept_admin, ProgressStatus.APPROVED, notes="Matches site photos"
        )

        assert entry.status == ProgressStatus.APPROVED
        assert entry.verified_by == world.dept_admin.id
        assert entry.verified_at is not None
        assert entry.verification_notes == "Matches site photos"

    @pytest.mark.asyncio
    async def test_review_decisions_are_final(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        entry = (await work_progress_service.list_entries(flow.db, tender.id))[0]
        await work_progress_service.review(flow.db, entry.id, world.dept_admin, ProgressStatus.REQUIRES_CHANGES)

        with pytest.raises(InvalidTransition):
            await work_progress_service.review(flow.db, entry.id, world.dept_admin, ProgressStatus.APPROVED)

        await flow.recover()
        assert entry.status == ProgressStatus.REQUIRES_CHANGES

    @pytest.mark.asyncio
    async def test_only_decisions_accepted(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        entry = (await work_progress_service.list_entries(flow.db, tender.id))[0]

        with pytest.raises(ValidationError):
            await work_progress_service.review(flow.db, entry.id, world.dept_admin, ProgressStatus.DRAFT)

    @pytest.mark.asyncio
    async def test_contractor_cannot_review(self, flow, world):
        tender, _ = await flow.tender_in_progress()
        entry = (await work_progress_service.list_entries(flow.db, tender.id))[0]

        with pytest.raises(Unauthorized) as exc_info:
            await work_progress_service.review(flow.db, entry.id, world.contractor, ProgressStatus.APPROVED)
        assert exc_info.value.rule == "not_reviewer"
