"""Read-only projections filtered by what the requesting actor may see."""

import logging

from sqlalchemy import false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.errors import ReferentialViolation, Unauthorized
from civicflow.models import (
    Actor,
    ActorRole,
    Assignment,
    Bid,
    BidEvaluation,
    Document,
    Issue,
    IssueStage,
    Tender,
    TenderStage,
    WorkProgressEntry,
)

from .document_service import document_service

logger = logging.getLogger(__name__)


def _manages_tender(actor: Actor, tender: Tender) -> bool:
    return actor.is_platform_admin or actor.administers_department(tender.department_id)


def issue_visibility(actor: Actor):
    """SQL condition selecting the issues ``actor`` may see."""
    if actor.is_platform_admin:
        return None
    conditions = [Issue.reporter_id == actor.id]
    if actor.role == ActorRole.AREA_SUPERVISOR and actor.assigned_area_id is not None:
        conditions.append(Issue.assigned_area_id == actor.assigned_area_id)
    elif actor.role == ActorRole.DEPARTMENT_ADMIN and actor.assigned_department_id is not None:
        conditions.append(Issue.assigned_department_id == actor.assigned_department_id)
    elif actor.role == ActorRole.CONTRACTOR:
        conditions.append(Issue.current_assignee_id == actor.id)
    return or_(*conditions)


def tender_visibility(actor: Actor):
    """Tenders are public once bidding opens; drafts stay with their department."""
    if actor.is_platform_admin:
        return None
    conditions = [Tender.workflow_stage != TenderStage.CREATED]
    if actor.role == ActorRole.DEPARTMENT_ADMIN and actor.assigned_department_id is not None:
        conditions.append(Tender.department_id == actor.assigned_department_id)
    return or_(*conditions)


class QueryService:
    """Visibility-filtered reads for the HTTP layer."""

    # ----------------------------------------------------------------- issues

    async def list_issues(
        self,
        db: AsyncSession,
        actor: Actor,
        stage: IssueStage | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Issue]:
        query = select(Issue)
        condition = issue_visibility(actor)
        if condition is not None:
            query = query.where(condition)
        if stage is not None:
            query = query.where(Issue.workflow_stage == stage)

        result = await db.execute(query.order_by(Issue.created_at.desc(), Issue.id.desc()).offset(skip).limit(limit))
        return list(result.scalars().all())

    async def get_issue(self, db: AsyncSession, actor: Actor, issue_id: int) -> Issue:
        """
        Get one issue the actor may see.

        Invisible issues are reported as missing.
        """
        query = select(Issue).where(Issue.id == issue_id)
        condition = issue_visibility(actor)
        if condition is not None:
            query = query.where(condition)

        result = await db.execute(query)
        issue = result.scalar_one_or_none()
        if issue is None:
            raise ReferentialViolation(f"Issue {issue_id} not found", rule="issue_exists")
        return issue

    async def list_assignments(self, db: AsyncSession, actor: Actor, issue_id: int) -> list[Assignment]:
        """Delegation history of a visible issue.

        Managers of the issue see the whole chain; anyone else sees only the
        assignments they made or received.
        """
        issue = await self.get_issue(db, actor, issue_id)

        query = select(Assignment).where(Assignment.issue_id == issue.id)
        manages = (
            actor.is_platform_admin
            or actor.supervises_area(issue.assigned_area_id)
            or actor.administers_department(issue.assigned_department_id)
        )
        if not manages:
            query = query.where(or_(Assignment.assigned_by == actor.id, Assignment.assigned_to == actor.id))

        result = await db.execute(query.order_by(Assignment.id))
        return list(result.scalars().all())

    # ---------------------------------------------------------------- tenders

    async def list_tenders(
        self,
        db: AsyncSession,
        actor: Actor,
        stage: TenderStage | None = None,
        department_id: int | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Tender]:
        query = select(Tender)
        condition = tender_visibility(actor)
        if condition is not None:
            query = query.where(condition)
        if stage is not None:
            query = query.where(Tender.workflow_stage == stage)
        if department_id is not None:
            query = query.where(Tender.department_id == department_id)

        result = await db.execute(
            query.order_by(Tender.created_at.desc(), Tender.id.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def get_tender(self, db: AsyncSession, actor: Actor, tender_id: int) -> Tender:
        query = select(Tender).where(Tender.id == tender_id)
        condition = tender_visibility(actor)
        if condition is not None:
            query = query.where(condition)

        result = await db.execute(query)
        tender = result.scalar_one_or_none()
        if tender is None:
            raise ReferentialViolation(f"Tender {tender_id} not found", rule="tender_exists")
        return tender

    async def list_bids(self, db: AsyncSession, actor: Actor, tender_id: int) -> list[Bid]:
        """All bids for tender managers; a bidder sees only their own."""
        tender = await self.get_tender(db, actor, tender_id)

        query = select(Bid).where(Bid.tender_id == tender.id)
        if not _manages_tender(actor, tender):
            query = query.where(Bid.bidder_id == actor.id)

        result = await db.execute(query.order_by(Bid.amount, Bid.id))
        return list(result.scalars().all())

    async def get_bid(self, db: AsyncSession, actor: Actor, bid_id: int) -> Bid:
        bid = await db.get(Bid, bid_id)
        if bid is not None:
            tender = await db.get(Tender, bid.tender_id)
            if _manages_tender(actor, tender) or bid.bidder_id == actor.id:
                return bid
        raise ReferentialViolation(f"Bid {bid_id} not found", rule="bid_exists")

    async def list_evaluations(self, db: AsyncSession, actor: Actor, bid_id: int) -> list[BidEvaluation]:
        """Evaluations are visible to tender managers only."""
        bid = await self.get_bid(db, actor, bid_id)
        tender = await db.get(Tender, bid.tender_id)
        if not _manages_tender(actor, tender):
            raise Unauthorized("not_tender_manager")

        result = await db.execute(
            select(BidEvaluation).where(BidEvaluation.bid_id == bid.id).order_by(BidEvaluation.id)
        )
        return list(result.scalars().all())

    # --------------------------------------------------------------- progress

    async def list_progress(
        self,
        db: AsyncSession,
        actor: Actor,
        tender_id: int,
        milestones_only: bool = False,
    ) -> list[WorkProgressEntry]:
        tender = await self.get_tender(db, actor, tender_id)

        query = select(WorkProgressEntry).where(WorkProgressEntry.tender_id == tender.id)
        if not _manages_tender(actor, tender):
            if actor.role == ActorRole.CONTRACTOR:
                query = query.where(WorkProgressEntry.contractor_id == actor.id)
            else:
                query = query.where(false())
        if milestones_only:
            query = query.where(WorkProgressEntry.is_milestone == True)  # noqa: E712

        result = await db.execute(query.order_by(WorkProgressEntry.created_at, WorkProgressEntry.id))
        return list(result.scalars().all())

    # -------------------------------------------------------------- documents

    async def list_documents(self, db: AsyncSession, actor: Actor, tender_id: int) -> list[Document]:
        """Public documents, the actor's own uploads, or everything for managers."""
        tender = await self.get_tender(db, actor, tender_id)

        query = select(Document).where(Document.tender_id == tender.id)
        if not _manages_tender(actor, tender):
            query = query.where(
                or_(Document.is_public == True, Document.uploaded_by == actor.id)  # noqa: E712
            )

        result = await db.execute(query.order_by(Document.id))
        return list(result.scalars().all())

    async def document_versions(self, db: AsyncSession, actor: Actor, document_id: int) -> list[Document]:
        """The visible versions in a document's chain, oldest first."""
        chain = await document_service.version_chain(db, document_id)
        tender = await self.get_tender(db, actor, chain[0].tender_id)

        if _manages_tender(actor, tender):
            return chain
        visible = [d for d in chain if d.is_public or d.uploaded_by == actor.id]
        if not visible:
            raise ReferentialViolation(f"Document {document_id} not found", rule="document_exists")
        return visible


# Singleton instance
query_service = QueryService()
