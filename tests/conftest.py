"""Shared fixtures: an isolated SQLite database per test and a seeded directory."""

import os

# Point the application at SQLite before anything imports civicflow
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("NOTIFICATION_TRANSPORT", "log")

from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from civicflow.models import (
    Actor,
    ActorRole,
    Area,
    AssignmentType,
    Base,
    BidStatus,
    Department,
    ProgressType,
)
from civicflow.services.delegation_service import delegation_service
from civicflow.services.issue_workflow import issue_workflow
from civicflow.services.tender_workflow import tender_workflow
from civicflow.services.work_progress_service import work_progress_service


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'civicflow.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def world(session_factory):
    """Areas, departments and one actor per role, committed and detached."""
    async with session_factory() as session:
        north = Area(name="North District", code="NORTH", is_active=True)
        south = Area(name="South District", code="SOUTH", is_active=True)
        roads = Department(name="Roads", code="ROADS", category="infrastructure", is_active=True)
        lighting = Department(name="Street Lighting", code="LIGHT", category="utilities", is_active=True)
        session.add_all([north, south, roads, lighting])
        await session.flush()

        def actor(email: str, role: ActorRole, **kwargs) -> Actor:
            return Actor(email=email, full_name=email.split("@")[0].title(), role=role, is_active=True, **kwargs)

        actors = {
            "citizen": actor("citizen@example.org", ActorRole.CITIZEN),
            "admin": actor("admin@example.org", ActorRole.PLATFORM_ADMIN),
            "supervisor": actor("north@example.org", ActorRole.AREA_SUPERVISOR, assigned_area_id=north.id),
            "south_supervisor": actor("south@example.org", ActorRole.AREA_SUPERVISOR, assigned_area_id=south.id),
            "dept_admin": actor("roads@example.org", ActorRole.DEPARTMENT_ADMIN, assigned_department_id=roads.id),
            "dept_admin2": actor("roads2@example.org", ActorRole.DEPARTMENT_ADMIN, assigned_department_id=roads.id),
            "lighting_admin": actor(
                "lighting@example.org", ActorRole.DEPARTMENT_ADMIN, assigned_department_id=lighting.id
            ),
            "contractor": actor("builder@example.org", ActorRole.CONTRACTOR),
            "contractor2": actor("paver@example.org", ActorRole.CONTRACTOR),
            "contractor3": actor("digger@example.org", ActorRole.CONTRACTOR),
        }
        session.add_all(actors.values())
        await session.commit()

    return SimpleNamespace(north=north, south=south, roads=roads, lighting=lighting, **actors)


class Flow:
    """Drives entities to a given point of the workflow through the public services."""

    def __init__(self, db: AsyncSession, world: SimpleNamespace):
        self.db = db
        self.w = world

    async def recover(self):
        """Reload everything a rolled-back unit expired."""
        for obj in list(self.db.sync_session.identity_map.values()):
            await self.db.refresh(obj)

    async def issue(self, title: str = "Pothole on Main St"):
        return await issue_workflow.report_issue(self.db, self.w.citizen, title, category="roads")

    async def issue_in_area(self):
        issue = await self.issue()
        await delegation_service.delegate(
            self.db, issue.id, self.w.admin, AssignmentType.ADMIN_TO_AREA,
            to=self.w.supervisor.id, area_id=self.w.north.id,
        )
        return issue

    async def issue_at_department(self):
        issue = await self.issue_in_area()
        await delegation_service.delegate(
            self.db, issue.id, self.w.supervisor, AssignmentType.AREA_TO_DEPARTMENT,
            to=self.w.dept_admin.id, department_id=self.w.roads.id,
        )
        return issue

    async def issue_at_contractor(self, contractor=None):
        issue = await self.issue_at_department()
        await delegation_service.delegate(
            self.db, issue.id, self.w.dept_admin, AssignmentType.DEPARTMENT_TO_CONTRACTOR,
            to=(contractor or self.w.contractor).id,
        )
        return issue

    async def tender(self, source_issue_id=None, open_bidding: bool = True):
        tender = await tender_workflow.create_tender(
            self.db, self.w.dept_admin, self.w.roads.id, "Resurface Main St",
            estimated_value=Decimal("50000"), source_issue_id=source_issue_id,
        )
        if open_bidding:
            await tender_workflow.open_bidding(self.db, tender.id, self.w.dept_admin)
        return tender

    async def tender_in_review(self, source_issue_id=None, amounts=(Decimal("45000"), Decimal("47000"))):
        """Tender under review with one bid per amount, from contractor, contractor2, contractor3."""
        tender = await self.tender(source_issue_id=source_issue_id)
        bidders = [self.w.contractor, self.w.contractor2, self.w.contractor3]
        bids = []
        for bidder, amount in zip(bidders, amounts):
            bids.append(await tender_workflow.submit_bid(self.db, tender.id, bidder, amount))
        await tender_workflow.close_bidding(self.db, tender.id, self.w.dept_admin)
        await tender_workflow.start_review(self.db, tender.id, self.w.dept_admin)
        return tender, bids

    async def awarded_tender(self, source_issue_id=None):
        tender, bids = await self.tender_in_review(source_issue_id=source_issue_id)
        await tender_workflow.accept_bid(self.db, bids[0].id, self.w.dept_admin)
        assert bids[0].status == BidStatus.ACCEPTED
        return tender, bids

    async def tender_in_progress(self, source_issue_id=None):
        tender, bids = await self.awarded_tender(source_issue_id=source_issue_id)
        await work_progress_service.submit(
            self.db, tender.id, self.w.contractor, ProgressType.UPDATE,
            "Site prepared", "Barriers up, old asphalt milled", progress_percentage=20,
        )
        return tender, bids


@pytest.fixture
def flow(db, world):
    return Flow(db, world)
