"""Tests for the issue state machine."""

import pytest

from civicflow.errors import InvalidTransition, Unauthorized, ValidationError
from civicflow.models import IssuePriority, IssueStage
from civicflow.services.issue_workflow import issue_workflow


class TestReportIssue:

    @pytest.mark.asyncio
    async def test_report_creates_issue_in_reported_stage(self, db, world):
        issue = await issue_workflow.report_issue(
            db, world.citizen, "  Broken bench  ", description="Slats missing",
            location="Central Park", priority=IssuePriority.LOW,
        )

        assert issue.id is not None
        assert issue.workflow_stage == IssueStage.REPORTED
        assert issue.reporter_id == world.citizen.id
        assert issue.title == "Broken bench"
        assert issue.priority == IssuePriority.LOW
        assert issue.assigned_area_id is None
        assert issue.current_assignee_id is None

    @pytest.mark.asyncio
    async def test_title_required(self, db, world):
        with pytest.raises(ValidationError):
            await issue_workflow.report_issue(db, world.citizen, "   ")


class TestAdvance:

    @pytest.mark.asyncio
    async def test_manager_advances_one_stage(self, flow, world):
        issue = await flow.issue()

        await issue_workflow.advance(flow.db, issue.id, world.admin, IssueStage.AREA_REVIEW)

        assert issue.workflow_stage == IssueStage.AREA_REVIEW

    @pytest.mark.asyncio
    async def test_cannot_skip_stages(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(InvalidTransition):
            await issue_workflow.advance(flow.db, issue.id, world.admin, IssueStage.DEPARTMENT_ASSIGNED)

        await flow.recover()
        assert issue.workflow_stage == IssueStage.REPORTED

    @pytest.mark.asyncio
    async def test_reporter_cannot_advance(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(Unauthorized) as exc_info:
            await issue_workflow.advance(flow.db, issue.id, world.citizen, IssueStage.AREA_REVIEW)

        assert exc_info.value.rule == "not_issue_manager"
        await flow.recover()
        assert issue.workflow_stage == IssueStage.REPORTED

    @pytest.mark.asyncio
    async def test_resolve_not_reachable_through_advance(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(InvalidTransition):
            await issue_workflow.advance(flow.db, issue.id, world.admin, IssueStage.RESOLVED)


class TestWorkAndResolution:

    @pytest.mark.asyncio
    async def test_assignee_runs_the_work(self, flow, world):
        issue = await flow.issue_at_contractor()

        await issue_workflow.start_work(flow.db, issue.id, world.contractor)
        assert issue.workflow_stage == IssueStage.IN_PROGRESS

        await issue_workflow.submit_for_review(flow.db, issue.id, world.contractor)
        assert issue.workflow_stage == IssueStage.DEPARTMENT_REVIEW

    @pytest.mark.asyncio
    async def test_other_contractor_cannot_start_work(self, flow, world):
        issue = await flow.issue_at_contractor()

        with pytest.raises(Unauthorized):
            await issue_workflow.start_work(flow.db, issue.id, world.contractor2)

    @pytest.mark.asyncio
    async def test_resolution_requires_notes(self, flow, world):
        issue = await flow.issue_at_contractor()
        await issue_workflow.start_work(flow.db, issue.id, world.contractor)
        await issue_workflow.submit_for_review(flow.db, issue.id, world.contractor)

        with pytest.raises(ValidationError):
            await issue_workflow.resolve(flow.db, issue.id, world.dept_admin, "  ")

        assert issue.workflow_stage == IssueStage.DEPARTMENT_REVIEW

    @pytest.mark.asyncio
    async def test_assignee_cannot_sign_off_own_work(self, flow, world):
        issue = await flow.issue_at_contractor()
        await issue_workflow.start_work(flow.db, issue.id, world.contractor)
        await issue_workflow.submit_for_review(flow.db, issue.id, world.contractor)

        with pytest.raises(Unauthorized):
            await issue_workflow.resolve(flow.db, issue.id, world.contractor, "All done")

    @pytest.mark.asyncio
    async def test_resolve_is_terminal(self, flow, world):
        issue = await flow.issue_at_contractor()
        await issue_workflow.start_work(flow.db, issue.id, world.contractor)
        await issue_workflow.submit_for_review(flow.db, issue.id, world.contractor)

        await issue_workflow.resolve(flow.db, issue.id, world.dept_admin, "Pothole filled and sealed")

        assert issue.workflow_stage == IssueStage.RESOLVED
        assert issue.final_resolution_notes == "Pothole filled and sealed"
        assert issue.resolved_at is not None

        with pytest.raises(InvalidTransition):
            await issue_workflow.resolve(flow.db, issue.id, world.admin, "Again")
        await flow.recover()
        assert issue.workflow_stage == IssueStage.RESOLVED

    @pytest.mark.asyncio
    async def test_cannot_resolve_before_review(self, flow, world):
        issue = await flow.issue_at_contractor()

        with pytest.raises(InvalidTransition):
            await issue_workflow.resolve(flow.db, issue.id, world.dept_admin, "Done")
