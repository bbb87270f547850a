"""OutboxService: records notifications in the caller's transaction."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from partsource.models.enums import EventStatus
from partsource.models.event_outbox import EventOutbox

logger = logging.getLogger(__name__)

EVENT_RFQ_CREATED = "rfq.created"
EVENT_RFQ_ASSIGNED = "rfq.assigned"
EVENT_RFQ_SUPPLIER_DISPATCHED = "rfq.supplier_dispatched"
EVENT_RFQ_RESPONSE_IMPORTED = "rfq.response_imported"


class OutboxService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def publish_event(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_id: uuid.UUID,
        payload: dict,
        recipient_id: uuid.UUID | None = None,
    ) -> EventOutbox:
        """Create a PENDING outbox row; it commits or rolls back with the caller."""
        event = EventOutbox(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            recipient_id=recipient_id,
            payload=payload,
            status=EventStatus.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        logger.debug("Queued %s for %s %s", event_type, aggregate_type, aggregate_id)
        return event
