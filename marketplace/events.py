# marketplace/events.py
"""In-process event bus for "listing created / mutated" facts.

The core only emits; delivery to chat, notification or search-index
collaborators is whatever their subscribed handlers do with the event.
Handler failures are logged and never reach the code that published.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, List

from .clock import utcnow
from .utils import logger

LISTING_CREATED = "listing.created"
LISTING_UPDATED = "listing.updated"
LISTING_SOLD = "listing.sold"
LISTING_DEACTIVATED = "listing.deactivated"
LISTING_VIEWED = "listing.viewed"
LISTINGS_SWEPT = "listings.swept"

ALL_EVENTS = "*"


@dataclass
class ListingEvent:
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {"event_type": self.event_type, "occurred_at": self.occurred_at.isoformat(), "payload": self.payload}


def listing_state(listing) -> Dict[str, Any]:
    """The state snapshot carried by listing events."""
    return {
        "listing_id": listing.id,
        "seller_id": listing.seller_id,
        "is_active": listing.is_active,
        "is_sold": listing.is_sold,
        "price": str(listing.price),
        "updated_at": listing.updated_at.isoformat() if listing.updated_at else None,
    }


Handler = Callable[[ListingEvent], None]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = Lock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        """Register ``handler`` for ``event_type``; ``"*"`` receives everything."""
        with self._lock:
            self._subscribers[event_type].append(handler)
        logger.info("Registered handler for event: %s", event_type)

    def publish(self, event_type: str, payload: Dict[str, Any]) -> ListingEvent:
        event = ListingEvent(event_type=event_type, payload=payload)
        with self._lock:
            handlers = list(self._subscribers.get(event_type, ())) + list(self._subscribers.get(ALL_EVENTS, ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Handler error for %s", event_type)
        logger.debug("Published event: %s", event_type)
        return event
