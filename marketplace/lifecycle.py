# marketplace/lifecycle.py
"""Listing lifecycle: user transitions and the time-based sweep.

State machine::

    create ──> active ──(mark_sold)──> sold (inactive)
                 │  └──(soft_delete)─> inactive
                 └──(expires_at)─────> inactive ──(deleted_at)──> purged

Every check is a single read followed by a single conditional write. No
in-process locks are taken; two racing ``mark_sold`` calls are decided by the
``is_sold = false`` predicate of the update.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from . import crud, events
from .clock import SystemClock
from .config import Settings
from .db import session_scope
from .errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from .models import Listing
from .schemas import ListingCreate, ListingUpdate
from .utils import logger

# server-computed; a patch may never touch these
PROTECTED_FIELDS = frozenset({
    "id", "seller_id", "category_id", "created_at", "updated_at",
    "expires_at", "deleted_at", "is_active", "is_sold", "is_boosted", "views",
})


@dataclass
class SweepResult:
    deactivated: int
    purged: int
    ran_at: datetime


def parse_input(model: type, data: Any) -> BaseModel:
    """Validate ``data`` against a pydantic model, raising our ValidationError with per-field detail."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        fields = {}
        for err in e.errors():
            name = ".".join(str(p) for p in err["loc"]) or "body"
            fields[name] = err["msg"]
        raise ValidationError("Invalid listing data", fields=fields, cause=e) from e


def is_gone(listing: Listing, now: datetime) -> bool:
    return listing.deleted_at is not None and listing.deleted_at <= now


class LifecycleManager:
    def __init__(self, session_factory, settings: Settings, clock=None, bus: events.EventBus = None):
        self.session_factory = session_factory
        self.settings = settings
        self.clock = clock or SystemClock()
        self.bus = bus or events.EventBus()

    # ---- helpers ------------------------------------------------------------

    def _load(self, db: Session, listing_id: str, now: datetime) -> Listing:
        listing = crud.get_listing(db, listing_id)
        if listing is None or is_gone(listing, now):
            raise NotFoundError("Listing", listing_id)
        return listing

    def _load_owned(self, db: Session, listing_id: str, requester_id: str, now: datetime) -> Listing:
        listing = self._load(db, listing_id, now)
        if listing.seller_id != requester_id:
            raise ForbiddenError()
        return listing

    # ---- user transitions ---------------------------------------------------

    def create(self, seller_id: str, data) -> Listing:
        payload: ListingCreate = parse_input(ListingCreate, data)
        now = self.clock.now()
        expires_at = now + self.settings.listing_expire_after
        deleted_at = now + self.settings.listing_purge_after
        if not expires_at < deleted_at:
            raise ValidationError(
                "Listing must expire before it is purged",
                fields={"expires_at": "must be before deleted_at"},
            )

        with session_scope(self.session_factory, "create") as db:
            category = crud.get_category(db, payload.category_id)
            if category is None:
                raise NotFoundError("Category", payload.category_id)
            if not category.is_active:
                raise ValidationError.for_field("category_id", "category is not active")

            listing = crud.insert_listing(db, Listing(
                **payload.model_dump(),
                seller_id=seller_id,
                is_active=True,
                is_sold=False,
                is_boosted=False,
                views=0,
                created_at=now,
                updated_at=now,
                expires_at=expires_at,
                deleted_at=deleted_at,
            ))

        logger.info("Created listing %s for seller %s", listing.id, seller_id)
        self.bus.publish(events.LISTING_CREATED, events.listing_state(listing))
        return listing

    def get(self, listing_id: str) -> Listing:
        now = self.clock.now()
        with session_scope(self.session_factory, "get") as db:
            return self._load(db, listing_id, now)

    def update(self, listing_id: str, requester_id: str, patch: Mapping[str, Any]) -> Listing:
        now = self.clock.now()
        with session_scope(self.session_factory, "update") as db:
            listing = self._load_owned(db, listing_id, requester_id, now)

            protected = PROTECTED_FIELDS.intersection(patch or {})
            if protected:
                raise ValidationError.for_fields(protected, "field cannot be changed")
            changes: Dict[str, Any] = parse_input(ListingUpdate, dict(patch or {})).model_dump(exclude_unset=True)
            if not changes:
                return listing

            changes["updated_at"] = now
            crud.update_listing_fields(db, listing_id, changes)
            listing = self._load(db, listing_id, now)

        logger.info("Updated listing %s fields=%s", listing_id, sorted(k for k in changes if k != "updated_at"))
        self.bus.publish(events.LISTING_UPDATED, events.listing_state(listing))
        return listing

    def mark_sold(self, listing_id: str, requester_id: str) -> Listing:
        now = self.clock.now()
        with session_scope(self.session_factory, "mark_sold") as db:
            listing = self._load_owned(db, listing_id, requester_id, now)
            if listing.is_sold:
                raise ConflictError("Listing is already marked as sold", details={"listing_id": listing_id})
            if not crud.mark_sold_if_unsold(db, listing_id, now):
                # lost the race to a concurrent sell
                raise ConflictError("Listing is already marked as sold", details={"listing_id": listing_id})
            listing = crud.get_listing(db, listing_id)

        logger.info("Listing %s marked sold", listing_id)
        self.bus.publish(events.LISTING_SOLD, events.listing_state(listing))
        return listing

    def soft_delete(self, listing_id: str, requester_id: str) -> None:
        """Deactivate a listing. Deactivating an already inactive listing succeeds without effect."""
        now = self.clock.now()
        with session_scope(self.session_factory, "soft_delete") as db:
            self._load_owned(db, listing_id, requester_id, now)
            changed = crud.deactivate_if_active(db, listing_id, now)
            listing = crud.get_listing(db, listing_id) if changed else None

        if not changed:
            logger.info("Soft delete of %s was a no-op (already inactive)", listing_id)
            return
        logger.info("Listing %s soft-deleted", listing_id)
        self.bus.publish(events.LISTING_DEACTIVATED, events.listing_state(listing))

    def increment_view(self, listing_id: str) -> Optional[int]:
        try:
            with session_scope(self.session_factory, "increment_view") as db:
                views = crud.increment_views(db, listing_id)
        except StoreUnavailableError as e:
            logger.warning("View increment for %s dropped: %s", listing_id, e)
            return None
        if views is None:
            raise NotFoundError("Listing", listing_id)
        self.bus.publish(events.LISTING_VIEWED, {"listing_id": listing_id, "views": views})
        return views

    # ---- time-based transitions ---------------------------------------------

    def sweep(self, now: datetime = None) -> SweepResult:
        """Deactivate expired listings, then purge those past deleted_at, against one ``now``."""
        now = now or self.clock.now()
        with session_scope(self.session_factory, "sweep") as db:
            deactivated = crud.deactivate_expired(db, now)
            logger.info("Deactivated %s expired listings", deactivated)
            purged = crud.purge_due(db, now)
            logger.info("Purged %s listings past their deletion date", purged)

        result = SweepResult(deactivated=deactivated, purged=purged, ran_at=now)
        self.bus.publish(events.LISTINGS_SWEPT, {"deactivated": deactivated, "purged": purged, "ran_at": now.isoformat()})
        return result
