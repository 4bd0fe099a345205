# tests/test_lifecycle.py
from datetime import timedelta
from decimal import Decimal

import pytest

from marketplace import events
from marketplace.config import Settings
from marketplace.errors import ConfigurationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from marketplace.lifecycle import LifecycleManager
from conftest import START


def test_create_sets_lifecycle_fields(make_listing, published):
    listing = make_listing()
    assert listing.is_active is True
    assert listing.is_sold is False
    assert listing.is_boosted is False
    assert listing.views == 0
    assert listing.created_at == START
    assert listing.expires_at == START + timedelta(minutes=3)
    assert listing.deleted_at == START + timedelta(minutes=5)
    assert listing.expires_at < listing.deleted_at
    assert listing.seller_id == "seller-1"
    assert [e.event_type for e in published] == [events.LISTING_CREATED]
    assert published[0].payload["listing_id"] == listing.id


@pytest.mark.parametrize("field,value", [
    ("price", Decimal("-1")),
    ("location", "   "),
    ("condition", "broken"),
    ("title", ""),
])
def test_create_rejects_invalid_fields(make_listing, field, value):
    with pytest.raises(ValidationError) as exc:
        make_listing(**{field: value})
    assert field in exc.value.fields


def test_create_requires_category(manager):
    with pytest.raises(ValidationError) as exc:
        manager.create("seller-1", {"title": "x", "condition": "new", "price": 1, "location": "y"})
    assert "category_id" in exc.value.fields


def test_create_rejects_unknown_category(make_listing):
    with pytest.raises(NotFoundError):
        make_listing(category_id="no-such-category")


def test_create_rejects_inactive_category(make_listing, db, categories):
    categories["Other"].is_active = False
    db.commit()
    with pytest.raises(ValidationError) as exc:
        make_listing(category="Other")
    assert "category_id" in exc.value.fields


def test_create_rejects_server_fields(make_listing):
    with pytest.raises(ValidationError) as exc:
        make_listing(seller_id="someone-else")
    assert "seller_id" in exc.value.fields


def test_create_rejects_purge_before_expiry(session_factory, settings, clock, categories):
    settings.listing_expire_after = timedelta(minutes=10)
    manager = LifecycleManager(session_factory, settings, clock=clock)
    with pytest.raises(ValidationError) as exc:
        manager.create("seller-1", {
            "title": "RTX 4090", "description": "Sealed in the box",
            "category_id": categories["GPU"].id,
            "condition": "new", "price": 1, "location": "y",
        })
    assert "expires_at" in exc.value.fields


def test_settings_reject_expiry_after_purge():
    settings = Settings(listing_expire_after=timedelta(weeks=6), listing_purge_after=timedelta(weeks=5))
    with pytest.raises(ConfigurationError):
        settings.validate()


def test_get_missing_listing(manager):
    with pytest.raises(NotFoundError):
        manager.get("missing")


def test_get_hides_listing_past_deletion_before_sweep(manager, make_listing, clock):
    listing = make_listing()
    clock.advance(minutes=5)
    with pytest.raises(NotFoundError):
        manager.get(listing.id)


def test_mark_sold(manager, make_listing, published, check_sold_invariant):
    listing = make_listing()
    sold = manager.mark_sold(listing.id, "seller-1")
    assert sold.is_sold is True
    assert sold.is_active is False
    assert published[-1].event_type == events.LISTING_SOLD
    check_sold_invariant()


def test_mark_sold_error_order(manager, make_listing):
    listing = make_listing()
    with pytest.raises(NotFoundError):
        manager.mark_sold("missing", "seller-1")
    with pytest.raises(ForbiddenError) as exc:
        manager.mark_sold(listing.id, "intruder")
    assert exc.value.message == "Not authorized"
    manager.mark_sold(listing.id, "seller-1")
    with pytest.raises(ConflictError):
        manager.mark_sold(listing.id, "seller-1")
    # a non-owner still gets Forbidden, not Conflict
    with pytest.raises(ForbiddenError):
        manager.mark_sold(listing.id, "intruder")


def test_soft_delete_deactivates_and_keeps_sold_flag(manager, make_listing, published, check_sold_invariant):
    listing = make_listing()
    manager.mark_sold(listing.id, "seller-1")
    manager.soft_delete(listing.id, "seller-1")
    stored = manager.get(listing.id)
    assert stored.is_sold is True
    assert stored.is_active is False
    check_sold_invariant()


def test_soft_delete_twice_is_silent(manager, make_listing, published):
    listing = make_listing()
    manager.soft_delete(listing.id, "seller-1")
    manager.soft_delete(listing.id, "seller-1")
    assert manager.get(listing.id).is_active is False
    kinds = [e.event_type for e in published]
    assert kinds.count(events.LISTING_DEACTIVATED) == 1


def test_soft_delete_checks_ownership(manager, make_listing):
    listing = make_listing()
    with pytest.raises(ForbiddenError):
        manager.soft_delete(listing.id, "intruder")
    with pytest.raises(NotFoundError):
        manager.soft_delete("missing", "seller-1")
    assert manager.get(listing.id).is_active is True


def test_update_merges_patch(manager, make_listing, clock, published):
    listing = make_listing()
    clock.advance(seconds=30)
    updated = manager.update(listing.id, "seller-1", {"price": "399.99", "title": "RTX 3080 FE"})
    assert updated.price == Decimal("399.99")
    assert updated.title == "RTX 3080 FE"
    assert updated.brand == "NVIDIA"
    assert updated.updated_at == START + timedelta(seconds=30)
    assert updated.created_at == START
    assert published[-1].event_type == events.LISTING_UPDATED


@pytest.mark.parametrize("field", ["seller_id", "created_at", "expires_at", "deleted_at", "id", "is_sold", "is_active"])
def test_update_rejects_server_computed_fields(manager, make_listing, field):
    listing = make_listing()
    with pytest.raises(ValidationError) as exc:
        manager.update(listing.id, "seller-1", {field: "x"})
    assert field in exc.value.fields


def test_update_rejects_negative_price(manager, make_listing):
    listing = make_listing()
    with pytest.raises(ValidationError) as exc:
        manager.update(listing.id, "seller-1", {"price": -5})
    assert "price" in exc.value.fields


@pytest.mark.parametrize("field", ["title", "description", "condition", "price", "location", "images"])
def test_update_rejects_null_for_required_fields(manager, make_listing, field):
    listing = make_listing()
    with pytest.raises(ValidationError) as exc:
        manager.update(listing.id, "seller-1", {field: None})
    assert field in exc.value.fields
    stored = manager.get(listing.id)
    assert stored.images == ["a.jpg"]
    assert stored.description == "Used graphics card, works great"


def test_update_may_clear_brand_and_model(manager, make_listing):
    listing = make_listing()
    updated = manager.update(listing.id, "seller-1", {"brand": None, "model": None})
    assert updated.brand is None
    assert updated.model is None


@pytest.mark.parametrize("field,value", [
    ("title", "ab"),
    ("title", "x" * 101),
    ("description", "too short"),
    ("description", "x" * 2001),
])
def test_text_length_bounds(manager, make_listing, field, value):
    with pytest.raises(ValidationError) as exc:
        make_listing(**{field: value})
    assert field in exc.value.fields
    listing = make_listing()
    with pytest.raises(ValidationError) as exc:
        manager.update(listing.id, "seller-1", {field: value})
    assert field in exc.value.fields


def test_title_is_trimmed_before_length_check(make_listing):
    with pytest.raises(ValidationError):
        make_listing(title="  ab  ")
    assert make_listing(title="  RTX 3090  ").title == "RTX 3090"


def test_update_requires_owner(manager, make_listing):
    listing = make_listing()
    with pytest.raises(ForbiddenError):
        manager.update(listing.id, "intruder", {"title": "mine now"})


def test_update_allowed_after_sale(manager, make_listing, check_sold_invariant):
    listing = make_listing()
    manager.mark_sold(listing.id, "seller-1")
    updated = manager.update(listing.id, "seller-1", {"description": "sold to a friend"})
    assert updated.description == "sold to a friend"
    assert updated.is_sold and not updated.is_active
    check_sold_invariant()


def test_increment_view(manager, make_listing):
    listing = make_listing()
    assert manager.increment_view(listing.id) == 1
    assert manager.increment_view(listing.id) == 2
    assert manager.get(listing.id).views == 2


def test_increment_view_missing_listing(manager):
    with pytest.raises(NotFoundError):
        manager.increment_view("missing")


def test_increment_view_publishes_count(manager, make_listing, published):
    listing = make_listing()
    manager.increment_view(listing.id)
    manager.increment_view(listing.id)
    viewed = [e for e in published if e.event_type == events.LISTING_VIEWED]
    assert [e.payload for e in viewed] == [
        {"listing_id": listing.id, "views": 1},
        {"listing_id": listing.id, "views": 2},
    ]


def test_missing_listing_view_publishes_nothing(manager, published):
    with pytest.raises(NotFoundError):
        manager.increment_view("missing")
    assert published == []
