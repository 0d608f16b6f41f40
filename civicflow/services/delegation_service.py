"""Assignment delegation chain: admin -> area -> department -> contractor."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.db import atomic, lock_row, scopes
from civicflow.errors import ConflictingState, InvalidTransition, ReferentialViolation, ValidationError
from civicflow.models import (
    Actor,
    ActorRole,
    Assignment,
    AssignmentStatus,
    AssignmentType,
    Issue,
    IssueStage,
)

from .access_control import Action, ensure_authorized
from .directory_service import directory_service
from .dispatcher import EntityKind, TransitionEvent, dispatcher

logger = logging.getLogger(__name__)

# Issue stages from which each tier may be delegated (or re-delegated)
DELEGATION_STAGES: dict[AssignmentType, frozenset[IssueStage]] = {
    AssignmentType.ADMIN_TO_AREA: frozenset({IssueStage.REPORTED, IssueStage.AREA_REVIEW}),
    AssignmentType.AREA_TO_DEPARTMENT: frozenset({IssueStage.AREA_REVIEW, IssueStage.DEPARTMENT_ASSIGNED}),
    AssignmentType.DEPARTMENT_TO_CONTRACTOR: frozenset(
        {IssueStage.DEPARTMENT_ASSIGNED, IssueStage.CONTRACTOR_ASSIGNED}
    ),
}

# Role the named assignee must hold, when one is named
ASSIGNEE_ROLE: dict[AssignmentType, ActorRole] = {
    AssignmentType.ADMIN_TO_AREA: ActorRole.AREA_SUPERVISOR,
    AssignmentType.AREA_TO_DEPARTMENT: ActorRole.DEPARTMENT_ADMIN,
    AssignmentType.DEPARTMENT_TO_CONTRACTOR: ActorRole.CONTRACTOR,
}


class DelegationService:
    """Records hand-offs of an issue down the delegation chain."""

    async def delegate(
        self,
        db: AsyncSession,
        issue_id: int,
        by: Actor,
        assignment_type: AssignmentType,
        to: int | None = None,
        area_id: int | None = None,
        department_id: int | None = None,
        notes: str | None = None,
    ) -> Assignment:
        """
        Delegate an issue to the next tier.

        Marks any active assignment of the same type as reassigned, inserts
        the new active assignment, mirrors its target onto the issue and
        advances the issue stage, all in one transaction.

        Args:
            db: Database session
            issue_id: Issue being delegated
            by: Acting actor (recorded as assigned_by)
            assignment_type: Delegation tier
            to: Person receiving the issue (required for contractors)
            area_id: Target area (required for admin_to_area)
            department_id: Target department (required for area_to_department)
            notes: Free-text assignment notes

        Returns:
            The new active assignment
        """
        async with scopes.hold("issue", issue_id, assignment_type.value):
            async with atomic(db):
                try:
                    return await self._delegate(
                        db, issue_id, by, assignment_type, to, area_id, department_id, notes
                    )
                except IntegrityError as e:
                    logger.warning(f"Concurrent delegation lost on issue {issue_id}: {e.orig}")
                    raise ConflictingState(
                        f"Another {assignment_type.value} assignment was created concurrently "
                        f"for issue {issue_id}"
                    ) from e

    async def _delegate(
        self,
        db: AsyncSession,
        issue_id: int,
        by: Actor,
        assignment_type: AssignmentType,
        to: int | None,
        area_id: int | None,
        department_id: int | None,
        notes: str | None,
    ) -> Assignment:
        issue = await lock_row(db, Issue, issue_id)
        if issue is None:
            raise ReferentialViolation(f"Issue {issue_id} not found", rule="issue_exists")

        assignment = Assignment(
            issue_id=issue.id,
            assigned_by=by.id,
            assigned_to=to,
            assigned_area_id=area_id,
            assigned_department_id=department_id,
            assignment_type=assignment_type,
            assignment_notes=notes,
            status=AssignmentStatus.ACTIVE,
        )
        ensure_authorized(by, assignment, Action.ASSIGNMENT_CREATE, issue=issue)

        # Stage consistency
        if issue.workflow_stage not in DELEGATION_STAGES[assignment_type]:
            raise InvalidTransition(
                f"Issue {issue.id} is {issue.workflow_stage.value}; "
                f"cannot delegate {assignment_type.value}"
            )
        if assignment_type == AssignmentType.DEPARTMENT_TO_CONTRACTOR and issue.assigned_department_id is None:
            raise InvalidTransition(f"Issue {issue.id} has no department attached")

        # Targets
        if assignment_type == AssignmentType.ADMIN_TO_AREA:
            if area_id is None:
                raise ValidationError("admin_to_area assignments need a target area")
            await directory_service.get_area(area_id, db)
        elif assignment_type == AssignmentType.AREA_TO_DEPARTMENT:
            if department_id is None:
                raise ValidationError("area_to_department assignments need a target department")
            await directory_service.get_department(department_id, db)
        elif to is None:
            raise ValidationError("department_to_contractor assignments need a contractor")

        if to is not None:
            assignee = await directory_service.resolve(to, db)
            expected_role = ASSIGNEE_ROLE[assignment_type]
            if assignee.role != expected_role:
                raise ValidationError(
                    f"Actor {to} is {assignee.role.value}; {assignment_type.value} "
                    f"assignments go to a {expected_role.value}"
                )
            if area_id is not None and assignee.assigned_area_id != area_id:
                raise ValidationError(f"Actor {to} does not supervise area {area_id}")
            if department_id is not None and assignee.assigned_department_id != department_id:
                raise ValidationError(f"Actor {to} does not administer department {department_id}")

        # (a) retire the previous active assignment of this tier
        previous = await self.active_assignment(db, issue.id, assignment_type)
        if previous is not None:
            previous.status = AssignmentStatus.REASSIGNED
            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(
                    EntityKind.ASSIGNMENT,
                    previous.id,
                    AssignmentStatus.ACTIVE.value,
                    AssignmentStatus.REASSIGNED.value,
                    by.id,
                ),
            )

        # (b) insert the new one; (c) and (d) are the dispatcher's cascade
        db.add(assignment)
        await db.flush()
        await dispatcher.dispatch(
            db,
            TransitionEvent(
                EntityKind.ASSIGNMENT,
                assignment.id,
                None,
                AssignmentStatus.ACTIVE.value,
                by.id,
                {"issue_id": issue.id, "assignment_type": assignment_type.value},
            ),
        )

        logger.info(
            f"Issue {issue.id} delegated ({assignment_type.value}) by actor {by.id}: "
            f"assignment {assignment.id}, stage {issue.workflow_stage.value}"
        )
        return assignment

    async def active_assignment(
        self,
        db: AsyncSession,
        issue_id: int,
        assignment_type: AssignmentType,
    ) -> Assignment | None:
        """The active assignment of one tier, if any."""
        result = await db.execute(
            select(Assignment).where(
                Assignment.issue_id == issue_id,
                Assignment.assignment_type == assignment_type,
                Assignment.status == AssignmentStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def complete_assignment(self, db: AsyncSession, assignment_id: int, actor: Actor) -> Assignment:
        """Mark an active assignment completed by its assignee or assigner."""
        return await self._close(db, assignment_id, actor, Action.ASSIGNMENT_COMPLETE, AssignmentStatus.COMPLETED)

    async def cancel_assignment(self, db: AsyncSession, assignment_id: int, actor: Actor) -> Assignment:
        """Cancel an active assignment. The issue keeps its stage."""
        return await self._close(db, assignment_id, actor, Action.ASSIGNMENT_CANCEL, AssignmentStatus.CANCELLED)

    async def _close(
        self,
        db: AsyncSession,
        assignment_id: int,
        actor: Actor,
        action: Action,
        status: AssignmentStatus,
    ) -> Assignment:
        async with atomic(db):
            assignment = await lock_row(db, Assignment, assignment_id)
            if assignment is None:
                raise ReferentialViolation(f"Assignment {assignment_id} not found", rule="assignment_exists")

            ensure_authorized(actor, assignment, action)

            if assignment.status != AssignmentStatus.ACTIVE:
                raise InvalidTransition(
                    f"Assignment {assignment.id} is {assignment.status.value}; only active assignments can change"
                )

            assignment.status = status
            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(
                    EntityKind.ASSIGNMENT,
                    assignment.id,
                    AssignmentStatus.ACTIVE.value,
                    status.value,
                    actor.id,
                ),
            )
            return assignment

    async def list_assignments(self, db: AsyncSession, issue_id: int) -> list[Assignment]:
        """Full delegation history of an issue, oldest first."""
        result = await db.execute(
            select(Assignment).where(Assignment.issue_id == issue_id).order_by(Assignment.id)
        )
        return list(result.scalars().all())


# Singleton instance
delegation_service = DelegationService()
