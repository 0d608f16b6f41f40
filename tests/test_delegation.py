"""Tests for the assignment delegation chain."""

import asyncio

import pytest
from sqlalchemy import func, select, update

from civicflow.errors import InvalidTransition, ReferentialViolation, Unauthorized, ValidationError
from civicflow.models import Assignment, AssignmentStatus, AssignmentType, Department, IssueStage
from civicflow.services.delegation_service import delegation_service


class TestDelegationChain:

    @pytest.mark.asyncio
    async def test_full_chain_mirrors_targets_onto_issue(self, flow, world):
        issue = await flow.issue_at_contractor()

        assert issue.workflow_stage == IssueStage.CONTRACTOR_ASSIGNED
        assert issue.assigned_area_id == world.north.id
        assert issue.assigned_department_id == world.roads.id
        assert issue.current_assignee_id == world.contractor.id

        assignments = await delegation_service.list_assignments(flow.db, issue.id)
        assert [a.assignment_type for a in assignments] == [
            AssignmentType.ADMIN_TO_AREA,
            AssignmentType.AREA_TO_DEPARTMENT,
            AssignmentType.DEPARTMENT_TO_CONTRACTOR,
        ]
        assert all(a.status == AssignmentStatus.ACTIVE for a in assignments)
        assert assignments[0].assigned_by == world.admin.id
        assert assignments[2].assigned_to == world.contractor.id

    @pytest.mark.asyncio
    async def test_area_delegation_without_named_supervisor(self, flow, world):
        issue = await flow.issue()

        assignment = await delegation_service.delegate(
            flow.db, issue.id, world.admin, AssignmentType.ADMIN_TO_AREA, area_id=world.south.id,
        )

        assert assignment.assigned_to is None
        assert issue.assigned_area_id == world.south.id
        assert issue.current_assignee_id is None
        assert issue.workflow_stage == IssueStage.AREA_REVIEW


class TestReassignment:

    @pytest.mark.asyncio
    async def test_redelegating_a_tier_retires_the_previous_assignment(self, flow, world):
        issue = await flow.issue_at_department()
        first = await delegation_service.active_assignment(flow.db, issue.id, AssignmentType.AREA_TO_DEPARTMENT)

        second = await delegation_service.delegate(
            flow.db, issue.id, world.supervisor, AssignmentType.AREA_TO_DEPARTMENT,
            to=world.lighting_admin.id, department_id=world.lighting.id, notes="Wrong department",
        )

        await flow.db.refresh(first)
        assert first.status == AssignmentStatus.REASSIGNED
        assert second.status == AssignmentStatus.ACTIVE
        assert issue.assigned_department_id == world.lighting.id
        assert issue.workflow_stage == IssueStage.DEPARTMENT_ASSIGNED

        active = await delegation_service.active_assignment(flow.db, issue.id, AssignmentType.AREA_TO_DEPARTMENT)
        assert active.id == second.id

    @pytest.mark.asyncio
    async def test_contractor_reassignment(self, flow, world):
        issue = await flow.issue_at_contractor()

        await delegation_service.delegate(
            flow.db, issue.id, world.dept_admin, AssignmentType.DEPARTMENT_TO_CONTRACTOR, to=world.contractor2.id,
        )

        assert issue.current_assignee_id == world.contractor2.id
        assert issue.workflow_stage == IssueStage.CONTRACTOR_ASSIGNED

        result = await flow.db.execute(
            select(Assignment.status)
            .where(Assignment.issue_id == issue.id, Assignment.assignment_type == AssignmentType.DEPARTMENT_TO_CONTRACTOR)
            .order_by(Assignment.id)
        )
        assert list(result.scalars().all()) == [AssignmentStatus.REASSIGNED, AssignmentStatus.ACTIVE]

    @pytest.mark.asyncio
    async def test_concurrent_delegations_leave_one_active(self, flow, world, session_factory):
        issue = await flow.issue_in_area()

        async def delegate(admin, department):
            async with session_factory() as session:
                return await delegation_service.delegate(
                    session, issue.id, world.supervisor, AssignmentType.AREA_TO_DEPARTMENT,
                    to=admin.id, department_id=department.id,
                )

        results = await asyncio.gather(
            delegate(world.dept_admin, world.roads),
            delegate(world.lighting_admin, world.lighting),
            return_exceptions=True,
        )
        assert not [r for r in results if isinstance(r, Exception)]

        result = await flow.db.execute(
            select(Assignment.status, func.count(Assignment.id))
            .where(Assignment.issue_id == issue.id, Assignment.assignment_type == AssignmentType.AREA_TO_DEPARTMENT)
            .group_by(Assignment.status)
        )
        counts = dict(result.all())
        assert counts == {AssignmentStatus.ACTIVE: 1, AssignmentStatus.REASSIGNED: 1}


class TestDelegationRules:

    @pytest.mark.asyncio
    async def test_only_platform_admin_delegates_to_areas(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(Unauthorized) as exc_info:
            await delegation_service.delegate(
                flow.db, issue.id, world.dept_admin, AssignmentType.ADMIN_TO_AREA, area_id=world.north.id,
            )
        assert exc_info.value.rule == "role_cannot_delegate"

    @pytest.mark.asyncio
    async def test_supervisor_of_other_area_cannot_delegate(self, flow, world):
        issue = await flow.issue_in_area()

        with pytest.raises(Unauthorized):
            await delegation_service.delegate(
                flow.db, issue.id, world.south_supervisor, AssignmentType.AREA_TO_DEPARTMENT,
                department_id=world.roads.id,
            )

        await flow.recover()
        assert issue.workflow_stage == IssueStage.AREA_REVIEW
        assert issue.assigned_department_id is None

    @pytest.mark.asyncio
    async def test_assignee_must_hold_the_tier_role(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(ValidationError):
            await delegation_service.delegate(
                flow.db, issue.id, world.admin, AssignmentType.ADMIN_TO_AREA,
                to=world.contractor.id, area_id=world.north.id,
            )

    @pytest.mark.asyncio
    async def test_assignee_must_belong_to_target(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(ValidationError):
            await delegation_service.delegate(
                flow.db, issue.id, world.admin, AssignmentType.ADMIN_TO_AREA,
                to=world.south_supervisor.id, area_id=world.north.id,
            )

    @pytest.mark.asyncio
    async def test_target_area_required(self, flow, world):
        issue = await flow.issue()

        with pytest.raises(ValidationError):
            await delegation_service.delegate(flow.db, issue.id, world.admin, AssignmentType.ADMIN_TO_AREA)

    @pytest.mark.asyncio
    async def test_inactive_department_rejected(self, flow, world):
        issue = await flow.issue_in_area()
        await flow.db.execute(update(Department).where(Department.id == world.lighting.id).values(is_active=False))
        await flow.db.commit()

        with pytest.raises(ReferentialViolation) as exc_info:
            await delegation_service.delegate(
                flow.db, issue.id, world.supervisor, AssignmentType.AREA_TO_DEPARTMENT,
                department_id=world.lighting.id,
            )
        assert exc_info.value.rule == "department_active"

    @pytest.mark.asyncio
    async def test_unknown_issue(self, db, world):
        with pytest.raises(ReferentialViolation) as exc_info:
            await delegation_service.delegate(
                db, 9999, world.admin, AssignmentType.ADMIN_TO_AREA, area_id=world.north.id,
            )
        assert exc_info.value.rule == "issue_exists"

    @pytest.mark.asyncio
    async def test_delegation_never_regresses_the_issue(self, flow, world):
        issue = await flow.issue_at_contractor()

        with pytest.raises(InvalidTransition):
            await delegation_service.delegate(
                flow.db, issue.id, world.admin, AssignmentType.ADMIN_TO_AREA, area_id=world.south.id,
            )

        await flow.recover()
        assert issue.workflow_stage == IssueStage.CONTRACTOR_ASSIGNED
        assert issue.assigned_area_id == world.north.id

    @pytest.mark.asyncio
    async def test_contractor_tier_needs_contractor(self, flow, world):
        issue = await flow.issue_at_department()

        with pytest.raises(ValidationError):
            await delegation_service.delegate(
                flow.db, issue.id, world.dept_admin, AssignmentType.DEPARTMENT_TO_CONTRACTOR,
            )


class TestClosingAssignments:

    @pytest.mark.asyncio
    async def test_assignee_completes_assignment(self, flow, world):
        issue = await flow.issue_at_contractor()
        assignment = await delegation_service.active_assignment(
            flow.db, issue.id, AssignmentType.DEPARTMENT_TO_CONTRACTOR
        )

        await delegation_service.complete_assignment(flow.db, assignment.id, world.contractor)
        assert assignment.status == AssignmentStatus.COMPLETED

        with pytest.raises(InvalidTransition):
            await delegation_service.complete_assignment(flow.db, assignment.id, world.contractor)
        await flow.recover()
        assert assignment.status == AssignmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_assignee_cannot_cancel(self, flow, world):
        issue = await flow.issue_at_contractor()
        assignment = await delegation_service.active_assignment(
            flow.db, issue.id, AssignmentType.DEPARTMENT_TO_CONTRACTOR
        )

        with pytest.raises(Unauthorized) as exc_info:
            await delegation_service.cancel_assignment(flow.db, assignment.id, world.contractor)
        assert exc_info.value.rule == "not_assignment_party"

    @pytest.mark.asyncio
    async def test_cancel_keeps_issue_stage_and_frees_the_tier(self, flow, world):
        issue = await flow.issue_at_contractor()
        assignment = await delegation_service.active_assignment(
            flow.db, issue.id, AssignmentType.DEPARTMENT_TO_CONTRACTOR
        )

        await delegation_service.cancel_assignment(flow.db, assignment.id, world.dept_admin)

        assert assignment.status == AssignmentStatus.CANCELLED
        assert issue.workflow_stage == IssueStage.CONTRACTOR_ASSIGNED
        assert await delegation_service.active_assignment(
            flow.db, issue.id, AssignmentType.DEPARTMENT_TO_CONTRACTOR
        ) is None

        replacement = await delegation_service.delegate(
            flow.db, issue.id, world.dept_admin, AssignmentType.DEPARTMENT_TO_CONTRACTOR, to=world.contractor3.id,
        )
        assert replacement.status == AssignmentStatus.ACTIVE
        assert issue.current_assignee_id == world.contractor3.id

        await flow.db.refresh(assignment)
        assert assignment.status == AssignmentStatus.CANCELLED
