"""Tests for notification delivery from the outbox."""

from contextlib import asynccontextmanager

import pytest
from sqlalchemy import select

from civicflow.config import settings
from civicflow.models import NotificationEvent, NotificationKind, NotificationStatus, ProgressType
from civicflow.scheduler import jobs
from civicflow.scheduler.job_stats import job_stats
from civicflow.services.notification_service import notification_service
from civicflow.services.transports import EmailTransport, LogTransport, WebhookTransport, get_transport
from civicflow.services.work_progress_service import work_progress_service


class RecordingTransport:
    name = "recording"

    def __init__(self):
        self.delivered = []

    async def deliver(self, event, recipient):
        self.delivered.append((event.id, recipient.email))
        return f"delivery-{event.id}"


class FailingTransport:
    name = "failing"

    async def deliver(self, event, recipient):
        raise ConnectionError("channel unavailable")


async def _all_events(db) -> list[NotificationEvent]:
    result = await db.execute(select(NotificationEvent).order_by(NotificationEvent.id))
    return list(result.scalars().all())


class TestRendering:

    def test_bid_accepted_message(self):
        message = notification_service.render_message(
            NotificationKind.BID_ACCEPTED, tender_title="Fix bridge", amount="120000.00"
        )
        assert message.startswith("Congratulations!")
        assert '"Fix bridge"' in message
        assert "120000.00" in message

    def test_completion_message(self):
        message = notification_service.render_message(
            NotificationKind.WORK_COMPLETION_SUBMITTED, tender_title="Fix bridge", entry_title="Final report"
        )
        assert "Fix bridge" in message
        assert "Final report" in message


class TestDelivery:

    @pytest.mark.asyncio
    async def test_pending_events_are_delivered(self, flow, world):
        await flow.awarded_tender()
        transport = RecordingTransport()

        sent = await notification_service.deliver_pending(flow.db, transport)

        assert sent == 1
        assert transport.delivered == [(transport.delivered[0][0], world.contractor.email)]
        event = (await _all_events(flow.db))[0]
        assert event.status == NotificationStatus.SENT
        assert event.attempts == 1
        assert event.delivered_at is not None

        assert await notification_service.deliver_pending(flow.db, transport) == 0

    @pytest.mark.asyncio
    async def test_failures_are_recorded_and_retried(self, flow, world, monkeypatch):
        monkeypatch.setattr(settings, "notification_max_attempts", 2)
        tender, _ = await flow.awarded_tender()

        assert await notification_service.deliver_pending(flow.db, FailingTransport()) == 0
        event = (await _all_events(flow.db))[0]
        assert event.status == NotificationStatus.FAILED
        assert event.attempts == 1
        assert event.error_message == "channel unavailable"

        assert await notification_service.deliver_pending(flow.db, FailingTransport()) == 0
        assert event.attempts == 2

        # Attempts exhausted
        assert await notification_service.deliver_pending(flow.db, RecordingTransport()) == 0
        assert event.status == NotificationStatus.FAILED

        # Workflow state is untouched by delivery failures
        await flow.db.refresh(tender)
        assert tender.awarded_contractor_id == world.contractor.id

    @pytest.mark.asyncio
    async def test_failed_event_succeeds_on_retry(self, flow, world):
        await flow.awarded_tender()

        await notification_service.deliver_pending(flow.db, FailingTransport())
        sent = await notification_service.deliver_pending(flow.db, RecordingTransport())

        event = (await _all_events(flow.db))[0]
        assert sent == 1
        assert event.status == NotificationStatus.SENT
        assert event.attempts == 2
        assert event.error_message is None

    @pytest.mark.asyncio
    async def test_batch_limit(self, flow, world):
        tender, _ = await flow.tender_in_progress()

        await work_progress_service.submit(
            flow.db, tender.id, world.contractor, ProgressType.COMPLETION, "Done", "All work finished",
            progress_percentage=100,
        )
        assert len(await _all_events(flow.db)) == 3

        assert await notification_service.deliver_pending(flow.db, RecordingTransport(), limit=2) == 2
        assert await notification_service.deliver_pending(flow.db, RecordingTransport(), limit=2) == 1

    @pytest.mark.asyncio
    async def test_list_for_recipient(self, flow, world):
        await flow.awarded_tender()

        mine = await notification_service.list_for_recipient(flow.db, world.contractor.id)
        theirs = await notification_service.list_for_recipient(flow.db, world.contractor2.id)

        assert [n.kind for n in mine] == [NotificationKind.BID_ACCEPTED]
        assert theirs == []


class TestDeliveryJob:

    @pytest.mark.asyncio
    async def test_job_delivers_and_records_stats(self, flow, world, session_factory, monkeypatch):
        await flow.awarded_tender()
        transport = RecordingTransport()

        @asynccontextmanager
        async def db_context():
            async with session_factory() as session:
                yield session
                await session.commit()

        monkeypatch.setattr(jobs, "get_db_context", db_context)
        monkeypatch.setattr(jobs, "get_transport", lambda: transport)
        runs_before = job_stats.get_stats("deliver_notifications").total_runs

        await jobs.deliver_notifications_job()

        stats = job_stats.get_stats("deliver_notifications")
        assert len(transport.delivered) == 1
        assert stats.total_runs == runs_before + 1
        assert stats.last_run.success is True
        assert stats.last_run.processed == 1

    @pytest.mark.asyncio
    async def test_job_failure_is_recorded(self, monkeypatch):
        @asynccontextmanager
        async def broken_context():
            raise RuntimeError("database unavailable")
            yield

        monkeypatch.setattr(jobs, "get_db_context", broken_context)

        await jobs.deliver_notifications_job()

        stats = job_stats.get_stats("deliver_notifications")
        assert stats.last_run.success is False
        assert stats.last_error == "database unavailable"
        assert stats.consecutive_failures >= 1


class TestTransports:

    def test_transport_selection(self, monkeypatch):
        assert isinstance(get_transport("log"), LogTransport)
        assert isinstance(get_transport("webhook"), WebhookTransport)
        assert isinstance(get_transport("email"), EmailTransport)

        monkeypatch.setattr(settings, "notification_transport", "log")
        assert isinstance(get_transport(), LogTransport)

    @pytest.mark.asyncio
    async def test_webhook_without_url_fails(self, flow, world):
        await flow.awarded_tender()
        event = (await _all_events(flow.db))[0]

        with pytest.raises(RuntimeError):
            await WebhookTransport("").deliver(event, world.contractor)

    @pytest.mark.asyncio
    async def test_log_transport(self, flow, world):
        await flow.awarded_tender()
        event = (await _all_events(flow.db))[0]

        assert await LogTransport().deliver(event, world.contractor) is None
