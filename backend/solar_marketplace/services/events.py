"""
Workflow events published after a transition commits.

Notification and audit-log sinks live outside the marketplace core. The
engines hand them a ``WorkflowEvent`` once the owning transaction has
committed; a failing sink is logged and otherwise ignored so it can never
undo or block a committed transition.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.base import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class WorkflowEvent:
    """A committed state change."""

    name: str
    entity_type: str
    entity_id: uuid.UUID
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


EventSink = Callable[[WorkflowEvent], Awaitable[None]]


async def publish_event(sink: Optional[EventSink], event: WorkflowEvent) -> None:
    """
    Deliver ``event`` to ``sink`` without letting sink failures escape.

    Args:
        sink: Consumer coroutine, or None when no sink is configured
        event: Event to deliver
    """
    if sink is None:
        return

    try:
        await sink(event)
        logger.debug(
            "Workflow event published",
            event_name=event.name,
            entity_id=str(event.entity_id),
        )
    except Exception as e:
        logger.error(
            "Failed to publish workflow event",
            event_name=event.name,
            entity_id=str(event.entity_id),
            error=str(e),
            error_type=type(e).__name__,
        )
        # Sinks are fire-and-forget; the transition is already committed
