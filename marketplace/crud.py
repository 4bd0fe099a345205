# marketplace/crud.py
"""Store operations for `Listing` and `Category` entities.

Every state-changing helper here is a single statement followed by a commit.
Lifecycle transitions are written as conditional updates keyed on the prior
flag values, so concurrent callers race on the row and not in Python.
"""
from datetime import datetime
from sqlalchemy import select, update, delete, and_, or_, func
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Sequence, Tuple
from .models import Category, Listing

DEFAULT_CATEGORIES = [
    {"name": "GPU", "slug": "gpu", "display_name": "GPUS", "color": "#6366f1"},
    {"name": "CPU", "slug": "cpu", "display_name": "CPUS", "color": "#10b981"},
    {"name": "RAM", "slug": "ram", "display_name": "MEMORY", "color": "#f59e0b"},
    {"name": "Motherboard", "slug": "motherboard", "display_name": "MOTHERBOARDS", "color": "#8b5cf6"},
    {"name": "Storage", "slug": "storage", "display_name": "STORAGE", "color": "#ec4899"},
    {"name": "PSU", "slug": "psu", "display_name": "POWER SUPPLIES", "color": "#3b82f6"},
    {"name": "Case", "slug": "case", "display_name": "GAMING PCS", "color": "#14b8a6"},
    {"name": "Cooling", "slug": "cooling", "display_name": "COOLING", "color": "#06b6d4"},
    {"name": "Peripheral", "slug": "peripheral", "display_name": "PERIPHERALS", "color": "#a855f7"},
    {"name": "Monitor", "slug": "monitor", "display_name": "MONITORS", "color": "#f97316"},
    {"name": "Other", "slug": "other", "display_name": "OTHER", "color": "#64748b"},
]


# ---- categories -------------------------------------------------------------

def seed_categories(db: Session, categories: Sequence[Dict[str, Any]] = DEFAULT_CATEGORIES) -> int:
    """Insert the default taxonomy if the table is empty. Returns rows inserted."""
    existing = db.scalar(select(func.count()).select_from(Category))
    if existing:
        return 0
    db.add_all([Category(**c) for c in categories])
    db.commit()
    return len(categories)

def list_categories(db: Session, active_only: bool = True) -> List[Category]:
    stmt = select(Category).order_by(Category.name)
    if active_only:
        stmt = stmt.where(Category.is_active.is_(True))
    return list(db.scalars(stmt))

def get_category(db: Session, category_id: str) -> Optional[Category]:
    return db.get(Category, category_id)

def get_category_by_slug(db: Session, slug: str) -> Optional[Category]:
    return db.scalar(select(Category).where(Category.slug == slug))


# ---- single listing ---------------------------------------------------------

def insert_listing(db: Session, listing: Listing) -> Listing:
    db.add(listing)
    db.commit()
    # reload so the joined category is populated before the session closes
    return get_listing(db, listing.id)

def get_listing(db: Session, listing_id: str) -> Optional[Listing]:
    return db.get(Listing, listing_id, populate_existing=True)

def update_listing_fields(db: Session, listing_id: str, values: Dict[str, Any]) -> int:
    """Unconditional field update keyed only on id."""
    res = db.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount

def mark_sold_if_unsold(db: Session, listing_id: str, now: datetime) -> bool:
    """Compare-and-set: only the first writer that sees is_sold = false wins."""
    res = db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.is_sold.is_(False))
        .values(is_sold=True, is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount == 1

def deactivate_if_active(db: Session, listing_id: str, now: datetime) -> bool:
    res = db.execute(
        update(Listing)
        .where(Listing.id == listing_id, Listing.is_active.is_(True))
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount == 1

def increment_views(db: Session, listing_id: str) -> Optional[int]:
    """Atomic ``views = views + 1``. Returns the new count, or None if the row is missing."""
    res = db.execute(
        update(Listing)
        .where(Listing.id == listing_id)
        .values(views=Listing.views + 1)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        return None
    # read inside the same transaction, before the write lock is released
    views = db.scalar(select(Listing.views).where(Listing.id == listing_id))
    db.commit()
    return views


# ---- sweep ------------------------------------------------------------------

def deactivate_expired(db: Session, now: datetime) -> int:
    """Deactivate listings past expires_at that are not yet due for purge."""
    res = db.execute(
        update(Listing)
        .where(
            Listing.expires_at.is_not(None),
            Listing.expires_at <= now,
            Listing.is_active.is_(True),
            Listing.is_sold.is_(False),
            Listing.deleted_at.is_not(None),
            Listing.deleted_at > now,
        )
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount

def purge_due(db: Session, now: datetime) -> int:
    """Permanently remove listings whose deleted_at has passed, whatever their flags."""
    res = db.execute(
        delete(Listing)
        .where(Listing.deleted_at.is_not(None), Listing.deleted_at <= now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return res.rowcount


# ---- feed -------------------------------------------------------------------

def not_gone(now: datetime):
    """Read-time eligibility: neither purged-but-unswept nor expired-but-unswept."""
    return and_(
        or_(Listing.deleted_at.is_(None), Listing.deleted_at > now),
        or_(Listing.expires_at.is_(None), Listing.expires_at > now),
    )

def query_listings(db: Session, where: Sequence, order_by: Sequence,
                   offset: int, limit: int) -> Tuple[int, List[Listing]]:
    cond = and_(*where) if where else None
    count_stmt = select(func.count()).select_from(Listing)
    stmt = select(Listing)
    if cond is not None:
        count_stmt = count_stmt.where(cond)
        stmt = stmt.where(cond)
    total = db.scalar(count_stmt) or 0
    items = list(db.scalars(stmt.order_by(*order_by).offset(offset).limit(limit)).unique())
    return total, items

def count_listings(db: Session, where: Sequence) -> int:
    return db.scalar(select(func.count()).select_from(Listing).where(*where)) or 0

def brand_counts(db: Session, where: Sequence, limit: int) -> List[Tuple[str, int]]:
    """Brands with a listing count, most listed first; ties break alphabetically."""
    count = func.count(Listing.id).label("count")
    stmt = (
        select(Listing.brand, count)
        .where(Listing.brand.is_not(None), Listing.brand != "", *where)
        .group_by(Listing.brand)
        .order_by(count.desc(), Listing.brand.asc())
        .limit(limit)
    )
    return [(brand, n) for brand, n in db.execute(stmt)]
