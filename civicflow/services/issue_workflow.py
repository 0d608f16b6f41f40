"""Issue state machine service."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.db import atomic, lock_row
from civicflow.errors import InvalidTransition, ReferentialViolation, ValidationError
from civicflow.models import Actor, Issue, IssuePriority, IssueStage

from .access_control import Action, ensure_authorized
from .dispatcher import EntityKind, TransitionEvent, dispatcher
from .stages import advance_issue, utcnow

logger = logging.getLogger(__name__)

# Access control action guarding a step into each stage
STEP_ACTION: dict[IssueStage, Action] = {
    IssueStage.IN_PROGRESS: Action.ISSUE_START_WORK,
    IssueStage.DEPARTMENT_REVIEW: Action.ISSUE_SUBMIT_COMPLETION,
    IssueStage.RESOLVED: Action.ISSUE_RESOLVE,
}


class IssueWorkflow:
    """Moves issues through reported -> ... -> resolved, one step at a time."""

    async def report_issue(
        self,
        db: AsyncSession,
        reporter: Actor,
        title: str,
        description: str | None = None,
        category: str | None = None,
        location: str | None = None,
        priority: IssuePriority = IssuePriority.MEDIUM,
    ) -> Issue:
        """
        File a new issue in the ``reported`` stage.

        Args:
            db: Database session
            reporter: Reporting actor (any active role)
            title: Short summary, required
            description: Free-text description
            category: Issue category (roads, lighting, ...)
            location: Human-readable location
            priority: Reporter-assigned urgency

        Returns:
            The new issue
        """
        if not title or not title.strip():
            raise ValidationError("Issue title is required")
        if not reporter.is_active:
            raise ReferentialViolation(f"Actor {reporter.id} is inactive", rule="actor_exists")

        async with atomic(db):
            issue = Issue(
                reporter_id=reporter.id,
                title=title.strip(),
                description=description,
                category=category,
                location=location,
                priority=priority,
                workflow_stage=IssueStage.REPORTED,
            )
            db.add(issue)
            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(EntityKind.ISSUE, issue.id, None, IssueStage.REPORTED.value, reporter.id),
            )

        logger.info(f"Issue {issue.id} reported by actor {reporter.id}: {issue.title}")
        return issue

    async def advance(self, db: AsyncSession, issue_id: int, actor: Actor, target: IssueStage) -> Issue:
        """
        Move an issue exactly one stage forward.

        Resolution needs notes, so ``resolved`` is only reachable through
        ``resolve``.

        Raises:
            InvalidTransition: If target is not the next stage
            Unauthorized: If access control denies the step
        """
        if target == IssueStage.RESOLVED:
            raise InvalidTransition("Resolving an issue requires resolution notes; use resolve")
        return await self._step(db, issue_id, actor, target)

    async def start_work(self, db: AsyncSession, issue_id: int, actor: Actor) -> Issue:
        """contractor_assigned -> in_progress."""
        return await self._step(db, issue_id, actor, IssueStage.IN_PROGRESS)

    async def submit_for_review(self, db: AsyncSession, issue_id: int, actor: Actor) -> Issue:
        """in_progress -> department_review, reported by the assignee or a manager."""
        return await self._step(db, issue_id, actor, IssueStage.DEPARTMENT_REVIEW)

    async def resolve(self, db: AsyncSession, issue_id: int, actor: Actor, notes: str) -> Issue:
        """
        Sign off an issue under department review. Terminal.

        Args:
            db: Database session
            issue_id: Issue to resolve
            actor: Resolving actor
            notes: Final resolution notes, required

        Returns:
            The resolved issue
        """
        if not notes or not notes.strip():
            raise ValidationError("Resolution notes are required")

        def record(issue: Issue) -> None:
            issue.final_resolution_notes = notes.strip()
            issue.resolved_at = utcnow()

        return await self._step(db, issue_id, actor, IssueStage.RESOLVED, record)

    async def _step(self, db: AsyncSession, issue_id: int, actor: Actor, target: IssueStage, apply=None) -> Issue:
        action = STEP_ACTION.get(target, Action.ISSUE_ADVANCE)

        async with atomic(db):
            issue = await lock_row(db, Issue, issue_id)
            if issue is None:
                raise ReferentialViolation(f"Issue {issue_id} not found", rule="issue_exists")

            ensure_authorized(actor, issue, action)
            old_stage = advance_issue(issue, target)
            if apply is not None:
                apply(issue)

            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(EntityKind.ISSUE, issue.id, old_stage.value, target.value, actor.id),
            )

        logger.info(f"Issue {issue.id}: {old_stage.value} -> {target.value} by actor {actor.id}")
        return issue


# Singleton instance
issue_workflow = IssueWorkflow()
