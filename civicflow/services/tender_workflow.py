"""Tender state machine and bid lifecycle service."""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.db import atomic, lock_row, scopes
from civicflow.errors import ConflictingState, InvalidTransition, ReferentialViolation, ValidationError
from civicflow.models import (
    LIVE_BID_STATUSES,
    Actor,
    Bid,
    BidEvaluation,
    BidStatus,
    Issue,
    Recommendation,
    Tender,
    TenderStage,
)

from .access_control import Action, ensure_authorized
from .directory_service import directory_service
from .dispatcher import EntityKind, TransitionEvent, dispatcher
from .stages import advance_tender, require_tender_stage, utcnow

logger = logging.getLogger(__name__)

# Tender stages in which bids may be evaluated, rejected or accepted
DECISION_STAGES = (TenderStage.BIDDING_CLOSED, TenderStage.UNDER_REVIEW)

SCORE_MIN = Decimal("0")
SCORE_MAX = Decimal("100")


def _to_decimal(value, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be a number, got {value!r}") from e


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TenderWorkflow:
    """Tender stage transitions and the bids competing for the award."""

    # ---------------------------------------------------------------- tenders

    async def create_tender(
        self,
        db: AsyncSession,
        creator: Actor,
        department_id: int,
        title: str,
        description: str | None = None,
        estimated_value: Decimal | None = None,
        bid_deadline: datetime | None = None,
        source_issue_id: int | None = None,
    ) -> Tender:
        """
        Create a tender in the ``created`` stage.

        Args:
            db: Database session
            creator: Department admin (or platform admin) creating the tender
            department_id: Owning department, must be active
            title: Tender title, required
            description: Scope of work
            estimated_value: Budget estimate, positive when given
            bid_deadline: Last moment bids are accepted
            source_issue_id: Issue this tender was raised for

        Returns:
            The new tender
        """
        if not title or not title.strip():
            raise ValidationError("Tender title is required")
        if estimated_value is not None:
            estimated_value = _to_decimal(estimated_value, "estimated_value")
            if estimated_value <= 0:
                raise ValidationError("estimated_value must be positive")

        async with atomic(db):
            tender = Tender(
                title=title.strip(),
                description=description,
                department_id=department_id,
                source_issue_id=source_issue_id,
                created_by=creator.id,
                estimated_value=estimated_value,
                bid_deadline=bid_deadline,
                workflow_stage=TenderStage.CREATED,
            )
            ensure_authorized(creator, tender, Action.TENDER_CREATE)

            await directory_service.get_department(department_id, db)
            if source_issue_id is not None and await db.get(Issue, source_issue_id) is None:
                raise ReferentialViolation(f"Issue {source_issue_id} not found", rule="issue_exists")

            db.add(tender)
            await db.flush()
            await dispatcher.dispatch(
                db,
                TransitionEvent(EntityKind.TENDER, tender.id, None, TenderStage.CREATED.value, creator.id),
            )

        logger.info(f"Tender {tender.id} created by actor {creator.id} for department {department_id}")
        return tender

    async def open_bidding(self, db: AsyncSession, tender_id: int, actor: Actor) -> Tender:
        """created -> bidding_open."""
        return await self._step(db, tender_id, actor, TenderStage.BIDDING_OPEN)

    async def close_bidding(self, db: AsyncSession, tender_id: int, actor: Actor) -> Tender:
        """bidding_open -> bidding_closed."""
        return await self._step(db, tender_id, actor, TenderStage.BIDDING_CLOSED)

    async def start_review(self, db: AsyncSession, tender_id: int, actor: Actor) -> Tender:
        """bidding_closed -> under_review."""
        return await self._step(db, tender_id, actor, TenderStage.UNDER_REVIEW)

    async def start_work(self, db: AsyncSession, tender_id: int, actor: Actor) -> Tender:
        """awarded -> work_in_progress, without waiting for a progress entry."""

        def record(tender: Tender) -> None:
            tender.work_started_at = utcnow()

        return await self._step(db, tender_id, actor, TenderStage.WORK_IN_PROGRESS, record)

    async def verify(self, db: AsyncSession, tender_id: int, actor: Actor, notes: str | None = None) -> Tender:
        """
        Verify completed work: work_completed -> verified.

        Args:
            db: Database session
            tender_id: Tender to verify
            actor: Verifying department admin
            notes: Verification notes

        Returns:
            The verified tender
        """

        def record(tender: Tender) -> None:
            tender.verification_notes = notes
            tender.verified_by = actor.id
            tender.verified_at = utcnow()

        return await self._step(db, tender_id, actor, TenderStage.VERIFIED, record)

    async def close(self, db: AsyncSession, tender_id: int, actor: Actor) -> Tender:
        """verified -> closed. Terminal."""

        def record(tender: Tender) -> None:
            tender.closed_at = utcnow()

        return await self._step(db, tender_id, actor, TenderStage.CLOSED, record)

    async def _step(self, db: AsyncSession, tender_id: int, actor: Actor, target: TenderStage, apply=None) -> Tender:
        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                ensure_authorized(actor, tender, Action.TENDER_TRANSITION)

                old_stage = advance_tender(tender, target)
                if apply is not None:
                    apply(tender)

                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(EntityKind.TENDER, tender.id, old_stage.value, target.value, actor.id),
                )

        logger.info(f"Tender {tender.id}: {old_stage.value} -> {target.value} by actor {actor.id}")
        return tender

    # ------------------------------------------------------------------- bids

    async def submit_bid(
        self,
        db: AsyncSession,
        tender_id: int,
        bidder: Actor,
        amount: Decimal,
        proposal: str | None = None,
        timeline_days: int | None = None,
    ) -> Bid:
        """
        Submit a contractor bid on a tender open for bidding.

        A contractor holds at most one live bid per tender; withdraw it to
        bid again.

        Args:
            db: Database session
            tender_id: Tender being bid on
            bidder: Contractor submitting the bid
            amount: Bid amount, positive
            proposal: Proposal text
            timeline_days: Promised duration in days, positive when given

        Returns:
            The submitted bid
        """
        amount = _to_decimal(amount, "amount")
        if amount <= 0:
            raise ValidationError("Bid amount must be positive")
        if timeline_days is not None and timeline_days <= 0:
            raise ValidationError("timeline_days must be positive")

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)

                bid = Bid(
                    tender_id=tender.id,
                    bidder_id=bidder.id,
                    amount=amount,
                    proposal=proposal,
                    timeline_days=timeline_days,
                    status=BidStatus.SUBMITTED,
                )
                ensure_authorized(bidder, bid, Action.BID_SUBMIT, tender=tender)

                if not tender.accepts_bids:
                    raise InvalidTransition(
                        f"Tender {tender.id} is {tender.workflow_stage.value}; bidding is not open"
                    )
                if tender.bid_deadline is not None and utcnow() > _as_utc(tender.bid_deadline):
                    raise InvalidTransition(f"Bid deadline for tender {tender.id} has passed")

                existing = await db.execute(
                    select(Bid.id).where(
                        Bid.tender_id == tender.id,
                        Bid.bidder_id == bidder.id,
                        Bid.status.in_(LIVE_BID_STATUSES),
                    )
                )
                if existing.first() is not None:
                    raise ConflictingState(f"Actor {bidder.id} already has a live bid on tender {tender.id}")

                db.add(bid)
                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(EntityKind.BID, bid.id, None, BidStatus.SUBMITTED.value, bidder.id),
                )

        logger.info(f"Bid {bid.id} submitted on tender {tender_id} by actor {bidder.id}: {amount}")
        return bid

    async def withdraw_bid(self, db: AsyncSession, bid_id: int, actor: Actor) -> Bid:
        """Withdraw a live bid. Only the bidder may withdraw."""
        tender_id = await self._tender_id_of(db, bid_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                bid = await lock_row(db, Bid, bid_id)
                ensure_authorized(actor, bid, Action.BID_WITHDRAW, tender=tender)

                if not bid.is_live:
                    raise InvalidTransition(f"Bid {bid.id} is {bid.status.value} and cannot be withdrawn")

                old_status = bid.status
                bid.status = BidStatus.WITHDRAWN
                bid.decided_at = utcnow()
                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(EntityKind.BID, bid.id, old_status.value, BidStatus.WITHDRAWN.value, actor.id),
                )

        logger.info(f"Bid {bid.id} withdrawn by actor {actor.id}")
        return bid

    async def begin_bid_evaluation(self, db: AsyncSession, bid_id: int, actor: Actor) -> Bid:
        """submitted -> under_evaluation, once bidding has closed."""
        tender_id = await self._tender_id_of(db, bid_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                bid = await lock_row(db, Bid, bid_id)
                ensure_authorized(actor, bid, Action.BID_EVALUATE, tender=tender)
                require_tender_stage(tender, *DECISION_STAGES)

                if bid.status != BidStatus.SUBMITTED:
                    raise InvalidTransition(
                        f"Bid {bid.id} is {bid.status.value}; only submitted bids can go under evaluation"
                    )

                bid.status = BidStatus.UNDER_EVALUATION
                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(
                        EntityKind.BID,
                        bid.id,
                        BidStatus.SUBMITTED.value,
                        BidStatus.UNDER_EVALUATION.value,
                        actor.id,
                    ),
                )

        return bid

    async def evaluate_bid(
        self,
        db: AsyncSession,
        bid_id: int,
        evaluator: Actor,
        technical_score: Decimal | None = None,
        financial_score: Decimal | None = None,
        experience_score: Decimal | None = None,
        total_score: Decimal | None = None,
        notes: str | None = None,
        recommendation: Recommendation | None = None,
    ) -> BidEvaluation:
        """
        Record one evaluator's scores for a live bid.

        Scores are on a 0-100 scale. When ``total_score`` is omitted it is the
        mean of the sub-scores given. Each evaluator scores a bid once.

        Returns:
            The stored evaluation
        """
        scores: dict[str, Decimal | None] = {}
        for field, value in (
            ("technical_score", technical_score),
            ("financial_score", financial_score),
            ("experience_score", experience_score),
            ("total_score", total_score),
        ):
            if value is None:
                scores[field] = None
                continue
            score = _to_decimal(value, field)
            if not SCORE_MIN <= score <= SCORE_MAX:
                raise ValidationError(f"{field} must be between {SCORE_MIN} and {SCORE_MAX}")
            scores[field] = score

        if scores["total_score"] is None:
            parts = [s for f, s in scores.items() if f != "total_score" and s is not None]
            if parts:
                mean = sum(parts) / len(parts)
                scores["total_score"] = mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        tender_id = await self._tender_id_of(db, bid_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                bid = await lock_row(db, Bid, bid_id)
                ensure_authorized(evaluator, bid, Action.BID_EVALUATE, tender=tender)
                require_tender_stage(tender, *DECISION_STAGES)

                if not bid.is_live:
                    raise InvalidTransition(f"Bid {bid.id} is {bid.status.value} and can no longer be evaluated")

                previous = await db.execute(
                    select(BidEvaluation.id).where(
                        BidEvaluation.bid_id == bid.id,
                        BidEvaluation.evaluator_id == evaluator.id,
                    )
                )
                if previous.first() is not None:
                    raise ConflictingState(f"Actor {evaluator.id} already evaluated bid {bid.id}")

                evaluation = BidEvaluation(
                    bid_id=bid.id,
                    evaluator_id=evaluator.id,
                    evaluation_notes=notes,
                    recommendation=recommendation,
                    **scores,
                )
                db.add(evaluation)
                try:
                    await db.flush()
                except IntegrityError as e:
                    raise ConflictingState(f"Actor {evaluator.id} already evaluated bid {bid.id}") from e

        logger.info(
            f"Bid {bid_id} evaluated by actor {evaluator.id}: total={evaluation.total_score}, "
            f"recommendation={recommendation.value if recommendation else None}"
        )
        return evaluation

    async def reject_bid(self, db: AsyncSession, bid_id: int, actor: Actor, reason: str | None = None) -> Bid:
        """Reject a live bid, recording the reason."""
        tender_id = await self._tender_id_of(db, bid_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                bid = await lock_row(db, Bid, bid_id)
                ensure_authorized(actor, bid, Action.BID_REJECT, tender=tender)

                if not bid.is_live:
                    raise InvalidTransition(f"Bid {bid.id} is {bid.status.value} and cannot be rejected")

                old_status = bid.status
                bid.status = BidStatus.REJECTED
                bid.rejection_reason = reason
                bid.decided_at = utcnow()
                await db.flush()
                await dispatcher.dispatch(
                    db,
                    TransitionEvent(EntityKind.BID, bid.id, old_status.value, BidStatus.REJECTED.value, actor.id),
                )

        logger.info(f"Bid {bid.id} rejected by actor {actor.id}: {reason}")
        return bid

    async def accept_bid(self, db: AsyncSession, bid_id: int, actor: Actor) -> Bid:
        """
        Accept a bid and award its tender.

        One atomic unit: the bid becomes accepted, the tender is awarded to
        the bidder, the source issue (if any) jumps to in_progress and the
        contractor is notified. Accepting an already-accepted bid returns it
        unchanged with no cascade.

        Args:
            db: Database session
            bid_id: Bid to accept
            actor: Department admin of the tender's department (or platform admin)

        Returns:
            The accepted bid

        Raises:
            ConflictingState: If another bid on the tender is already accepted
            Unauthorized: If the actor may not accept, or the tender is not
                in bidding_closed / under_review
            InvalidTransition: If the bid is withdrawn or rejected
        """
        tender_id = await self._tender_id_of(db, bid_id)

        async with scopes.hold("tender", tender_id):
            async with atomic(db):
                tender = await self._lock_tender(db, tender_id)
                bid = await lock_row(db, Bid, bid_id)

                ensure_authorized(actor, tender, Action.TENDER_TRANSITION)

                if bid.status != BidStatus.ACCEPTED:
                    winner = await self.accepted_bid(db, tender.id)
                    if winner is not None:
                        logger.warning(
                            f"Bid {bid.id} not accepted: tender {tender.id} already awarded to bid {winner.id}"
                        )
                        raise ConflictingState(f"Tender {tender.id} already has accepted bid {winner.id}")

                ensure_authorized(actor, bid, Action.BID_ACCEPT, tender=tender)

                if bid.status == BidStatus.ACCEPTED:
                    logger.info(f"Bid {bid.id} already accepted; nothing to do")
                    return bid

                if not bid.is_live:
                    raise InvalidTransition(f"Bid {bid.id} is {bid.status.value} and cannot be accepted")

                old_status = bid.status
                bid.status = BidStatus.ACCEPTED
                bid.decided_at = utcnow()
                try:
                    await db.flush()
                except IntegrityError as e:
                    logger.warning(f"Concurrent acceptance lost on tender {tender.id}: {e.orig}")
                    raise ConflictingState(f"Another bid on tender {tender.id} was accepted concurrently") from e

                await dispatcher.dispatch(
                    db,
                    TransitionEvent(EntityKind.BID, bid.id, old_status.value, BidStatus.ACCEPTED.value, actor.id),
                )

        logger.info(
            f"Bid {bid.id} accepted by actor {actor.id}: tender {tender.id} awarded to actor {bid.bidder_id}"
        )
        return bid

    async def accepted_bid(self, db: AsyncSession, tender_id: int) -> Bid | None:
        """The accepted bid of a tender, if any."""
        result = await db.execute(
            select(Bid).where(Bid.tender_id == tender_id, Bid.status == BidStatus.ACCEPTED)
        )
        return result.scalar_one_or_none()

    # ---------------------------------------------------------------- helpers

    async def _lock_tender(self, db: AsyncSession, tender_id: int) -> Tender:
        tender = await lock_row(db, Tender, tender_id)
        if tender is None:
            raise ReferentialViolation(f"Tender {tender_id} not found", rule="tender_exists")
        return tender

    async def _tender_id_of(self, db: AsyncSession, bid_id: int) -> int:
        result = await db.execute(select(Bid.tender_id).where(Bid.id == bid_id))
        tender_id = result.scalar_one_or_none()
        if tender_id is None:
            raise ReferentialViolation(f"Bid {bid_id} not found", rule="bid_exists")
        return tender_id


# Singleton instance
tender_workflow = TenderWorkflow()
