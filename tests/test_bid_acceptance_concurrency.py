"""Concurrent acceptance of bids on one tender.

Each acceptance runs in its own session, the way concurrent API requests do.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from civicflow.db import scopes
from civicflow.errors import ConflictingState
from civicflow.models import Bid, BidStatus, NotificationEvent, Tender, TenderStage
from civicflow.services.tender_workflow import tender_workflow


async def _accept_in_own_session(session_factory, bid_id: int, actor):
    async with session_factory() as session:
        bid = await tender_workflow.accept_bid(session, bid_id, actor)
        return bid.id


@pytest.mark.asyncio
async def test_exactly_one_of_competing_bids_wins(flow, world, session_factory):
    tender, bids = await flow.tender_in_review(
        amounts=(Decimal("45000"), Decimal("46000"), Decimal("47000"))
    )

    results = await asyncio.gather(
        *(_accept_in_own_session(session_factory, bid.id, world.dept_admin) for bid in bids),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, BaseException)]
    losers = [r for r in results if isinstance(r, BaseException)]
    assert len(winners) == 1
    assert len(losers) == len(bids) - 1
    assert all(isinstance(e, ConflictingState) for e in losers)
    assert scopes.active_keys() == []

    async with session_factory() as session:
        accepted = (
            await session.execute(
                select(Bid).where(Bid.tender_id == tender.id, Bid.status == BidStatus.ACCEPTED)
            )
        ).scalars().all()
        assert [b.id for b in accepted] == winners

        stored_tender = await session.get(Tender, tender.id)
        assert stored_tender.workflow_stage == TenderStage.AWARDED
        assert stored_tender.awarded_contractor_id == accepted[0].bidder_id

        notifications = await session.scalar(select(func.count(NotificationEvent.id)))
        assert notifications == 1


@pytest.mark.asyncio
async def test_racing_on_the_same_bid_is_idempotent(flow, world, session_factory):
    tender, bids = await flow.tender_in_review()

    results = await asyncio.gather(
        *(_accept_in_own_session(session_factory, bids[1].id, world.dept_admin) for _ in range(4)),
        return_exceptions=True,
    )

    assert results == [bids[1].id] * 4

    async with session_factory() as session:
        notifications = await session.scalar(select(func.count(NotificationEvent.id)))
        assert notifications == 1
        stored_tender = await session.get(Tender, tender.id)
        assert stored_tender.awarded_contractor_id == world.contractor2.id


@pytest.mark.asyncio
async def test_two_managers_racing_on_different_bids(flow, world, session_factory):
    tender, bids = await flow.tender_in_review()

    results = await asyncio.gather(
        _accept_in_own_session(session_factory, bids[0].id, world.dept_admin),
        _accept_in_own_session(session_factory, bids[1].id, world.dept_admin2),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, ConflictingState)) == 1
    assert sum(1 for r in results if isinstance(r, int)) == 1
