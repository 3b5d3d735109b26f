"""
Payment event routing by explicit message passing.

There is no global listener registry. A PaymentEventRouter is built per
webhook delivery from (event_type, subscriber) pairs, asked which
synchronous subscribers apply to a typed event, and discarded afterwards.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Tuple

logger = logging.getLogger(__name__)


class PaymentEventType:
    """Gateway event types routed by this service."""
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"
    CHARGE_DISPUTE_CREATED = "charge.dispute.created"


@dataclass(frozen=True)
class PaymentEvent:
    """Typed view of a verified gateway event."""
    id: str
    type: str
    created: datetime
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def object(self) -> Dict[str, Any]:
        """The event's primary object (payment intent, dispute, ...)."""
        return self.data.get("object") or {}

    @classmethod
    def from_gateway_event(cls, event: Dict[str, Any]) -> "PaymentEvent":
        created = event.get("created")
        created_at = (
            datetime.fromtimestamp(created, tz=timezone.utc)
            if isinstance(created, (int, float))
            else datetime.now(timezone.utc)
        )
        return cls(
            id=event.get("id", ""),
            type=event.get("type", ""),
            created=created_at,
            data=event.get("data") or {},
        )


Subscriber = Callable[[PaymentEvent], Any]


class PaymentEventRouter:
    """
    Maps event types to the subscribers that handle them.

    Subscribers run synchronously, in registration order.
    """

    def __init__(self, routes: Iterable[Tuple[str, Subscriber]]):
        self._routes: List[Tuple[str, Subscriber]] = list(routes)

    def subscribers_for(self, event: PaymentEvent) -> List[Subscriber]:
        return [subscriber for event_type, subscriber in self._routes if event_type == event.type]

    def dispatch(self, event: PaymentEvent) -> List[Any]:
        """
        Invoke every subscriber for the event.

        Returns:
            Subscriber return values, in order. Empty if none matched.
        """
        subscribers = self.subscribers_for(event)
        if not subscribers:
            logger.info("Unhandled webhook event type", extra={
                "event_id": event.id,
                "event_type": event.type,
            })
            return []
        return [subscriber(event) for subscriber in subscribers]
