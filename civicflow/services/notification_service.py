"""Notification service: outbox writes and delivery of pending events."""

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civicflow.config import settings
from civicflow.models import Actor, NotificationEvent, NotificationKind, NotificationStatus

from .stages import utcnow
from .transports import NotificationTransport, jinja_env

logger = logging.getLogger(__name__)

TITLES: dict[NotificationKind, str] = {
    NotificationKind.BID_ACCEPTED: "Bid Accepted!",
    NotificationKind.WORK_COMPLETION_SUBMITTED: "Work Completion Submitted",
}


class NotificationService:
    """Produces notification events and hands pending ones to a transport."""

    def render_message(self, kind: NotificationKind, **context) -> str:
        """Render the message body for a notification kind."""
        template = jinja_env.get_template(f"notifications/{kind.value}.txt")
        return template.render(**context).strip()

    async def emit(
        self,
        db: AsyncSession,
        recipient_id: int,
        kind: NotificationKind,
        related_id: int,
        related_type: str,
        **context,
    ) -> NotificationEvent:
        """
        Write a notification event in the caller's transaction.

        Args:
            db: Database session of the originating transition
            recipient_id: Actor to notify
            kind: Notification kind
            related_id: ID of the entity the notification is about
            related_type: Type of that entity ("tender", "bid", ...)
            **context: Template variables for the message

        Returns:
            The pending notification event
        """
        event = NotificationEvent(
            recipient_id=recipient_id,
            kind=kind,
            title=TITLES[kind],
            message=self.render_message(kind, **context),
            related_id=related_id,
            related_type=related_type,
            status=NotificationStatus.PENDING,
            attempts=0,
        )
        db.add(event)
        await db.flush()

        logger.info(f"Notification {event.id} queued: {kind.value} for actor {recipient_id}")
        return event

    async def pending(self, db: AsyncSession, limit: int) -> list[NotificationEvent]:
        """Events awaiting delivery, oldest first, including retryable failures."""
        result = await db.execute(
            select(NotificationEvent)
            .where(
                or_(
                    NotificationEvent.status == NotificationStatus.PENDING,
                    (NotificationEvent.status == NotificationStatus.FAILED)
                    & (NotificationEvent.attempts < settings.notification_max_attempts),
                )
            )
            .order_by(NotificationEvent.created_at, NotificationEvent.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list(result.scalars().all())

    async def deliver_pending(
        self,
        db: AsyncSession,
        transport: NotificationTransport,
        limit: int | None = None,
    ) -> int:
        """
        Deliver pending notification events.

        Failures are recorded on the event and retried on later runs until
        ``notification_max_attempts`` is reached. They never touch workflow
        state.

        Args:
            db: Database session
            transport: Delivery channel
            limit: Maximum number of events to process

        Returns:
            Number of events delivered
        """
        events = await self.pending(db, limit or settings.notification_batch_size)

        if not events:
            logger.debug("No pending notifications")
            return 0

        sent_count = 0

        for event in events:
            event.attempts += 1
            try:
                recipient = await db.get(Actor, event.recipient_id)
                if recipient is None:
                    raise LookupError(f"Recipient {event.recipient_id} no longer exists")

                await transport.deliver(event, recipient)

                event.status = NotificationStatus.SENT
                event.delivered_at = utcnow()
                event.error_message = None
                sent_count += 1
                logger.info(f"Notification {event.id} delivered via {transport.name}")

            except Exception as e:
                logger.error(f"Error delivering notification {event.id} via {transport.name}: {e}")
                event.status = NotificationStatus.FAILED
                event.error_message = str(e)[:1000]

            await db.commit()

        return sent_count

    async def list_for_recipient(
        self,
        db: AsyncSession,
        recipient_id: int,
        skip: int = 0,
        limit: int = 50,
    ) -> list[NotificationEvent]:
        result = await db.execute(
            select(NotificationEvent)
            .where(NotificationEvent.recipient_id == recipient_id)
            .order_by(NotificationEvent.created_at.desc(), NotificationEvent.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())


# Singleton instance
notification_service = NotificationService()
