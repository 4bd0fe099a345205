# marketplace/query.py
"""Discovery queries: facets -> predicate + ordering + page.

The WHERE clause is a conjunction of independent fragments. Each fragment
looks at the normalized facets and returns a clause or None, so it can be
tested on its own and new facets are added by appending to ``FRAGMENTS``.
"""
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, or_

from . import crud
from .clock import SystemClock
from .config import Settings
from .db import session_scope
from .errors import NotFoundError, ValidationError
from .facets import FacetNormalizer
from .lifecycle import parse_input
from .models import CONDITIONS, Category, Listing
from .schemas import ListingFilters

DEFAULT_SORT = "newest"

FEATURED_LIMIT = 12
TRENDING_LIMIT = 8
RECENTLY_SOLD_LIMIT = 8
BRAND_LIMIT = 10

SORTS = {
    "price-low": (Listing.price.asc(),),
    "price-high": (Listing.price.desc(),),
    "oldest": (Listing.created_at.asc(),),
    "newest": (Listing.created_at.desc(),),
    "recently-added": (Listing.created_at.desc(),),
}


@dataclass(frozen=True)
class Facets:
    """Filters after category precedence and search resolution have been applied."""
    is_active: bool = True
    category_id: Optional[str] = None
    brand: Optional[str] = None
    condition: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    location: Optional[str] = None
    text: Optional[str] = None
    seller_id: Optional[str] = None


@dataclass
class ListingPage:
    items: List[Listing]
    total_count: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0


@dataclass
class HomepageSections:
    featured: List[Listing]
    trending: List[Listing]
    recently_sold: List[Listing]
    total_active: int


@dataclass
class CategorySummary:
    category: Category
    listing_count: int


# ---- predicate fragments ----------------------------------------------------

Fragment = Callable[[Facets, datetime], Any]

def visibility_fragment(f: Facets, now: datetime):
    # re-checks time eligibility so an unswept expired listing never leaks
    return and_(
        Listing.is_active.is_(f.is_active),
        Listing.is_sold.is_(False),
        crud.not_gone(now),
    )

def category_fragment(f: Facets, now: datetime):
    if f.category_id:
        return Listing.category_id == f.category_id

def brand_fragment(f: Facets, now: datetime):
    if f.brand:
        return Listing.brand.icontains(f.brand, autoescape=True)

def condition_fragment(f: Facets, now: datetime):
    if f.condition:
        return Listing.condition == f.condition

def price_range_fragment(f: Facets, now: datetime):
    conds = []
    if f.min_price is not None:
        conds.append(Listing.price >= f.min_price)
    if f.max_price is not None:
        conds.append(Listing.price <= f.max_price)
    if conds:
        return and_(*conds)

def location_fragment(f: Facets, now: datetime):
    if f.location:
        return Listing.location.icontains(f.location, autoescape=True)

def text_fragment(f: Facets, now: datetime):
    if f.text:
        # literal substring: % and _ typed by a user are not wildcards
        return or_(*(
            column.icontains(f.text, autoescape=True)
            for column in (Listing.title, Listing.description, Listing.brand, Listing.model)
        ))

def seller_fragment(f: Facets, now: datetime):
    if f.seller_id:
        return Listing.seller_id == f.seller_id

FRAGMENTS: Sequence[Fragment] = (
    visibility_fragment,
    category_fragment,
    brand_fragment,
    condition_fragment,
    price_range_fragment,
    location_fragment,
    text_fragment,
    seller_fragment,
)

def build_predicate(facets: Facets, now: datetime, fragments: Sequence[Fragment] = FRAGMENTS) -> list:
    clauses = (fragment(facets, now) for fragment in fragments)
    return [c for c in clauses if c is not None]


# ---- ordering and paging ----------------------------------------------------

def build_order(sort: Optional[str]) -> list:
    """Boosted first, then the requested metric, then id so pages never overlap."""
    key = sort or DEFAULT_SORT
    if key not in SORTS:
        raise ValidationError.for_field("sort", f"must be one of {', '.join(SORTS)}")
    return [Listing.is_boosted.desc(), *SORTS[key], Listing.id.asc()]

def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None

def clamp_page(page: Any) -> int:
    n = _as_int(page)
    return n if n is not None and n >= 1 else 1

def clamp_limit(limit: Any, default: int, ceiling: int) -> int:
    n = _as_int(limit)
    if n is None or n < 1:
        return default
    return min(n, ceiling)


class QueryPlanner:
    def __init__(self, session_factory, settings: Settings, clock=None, normalizer: FacetNormalizer = None):
        self.session_factory = session_factory
        self.settings = settings
        self.clock = clock or SystemClock()
        self.normalizer = normalizer or FacetNormalizer()

    def list_categories(self):
        with session_scope(self.session_factory, "list_categories") as db:
            return crud.list_categories(db)

    def _explicit_category(self, db, filters: ListingFilters, categories) -> Optional[str]:
        """categorySlug beats categoryId beats partType."""
        if filters.category_slug:
            category = crud.get_category_by_slug(db, filters.category_slug)
            if category is None:
                raise NotFoundError("Category", filters.category_slug)
            return category.id
        if filters.category_id:
            if crud.get_category(db, filters.category_id) is None:
                raise NotFoundError("Category", filters.category_id)
            return filters.category_id
        if filters.part_type:
            category = self.normalizer.resolve_token(filters.part_type, categories)
            if category is None:
                raise ValidationError.for_field("part_type", "unknown part type")
            return category.id
        return None

    def plan(self, db, filters: ListingFilters) -> Facets:
        if filters.condition and filters.condition not in CONDITIONS:
            raise ValidationError.for_field("condition", f"must be one of {', '.join(CONDITIONS)}")

        categories = crud.list_categories(db)
        explicit = self._explicit_category(db, filters, categories)
        resolution = self.normalizer.resolve_search(filters.search, categories)

        return Facets(
            is_active=filters.is_active,
            category_id=self.normalizer.choose_category(explicit, resolution),
            brand=filters.brand or None,
            condition=filters.condition or None,
            min_price=filters.min_price,
            max_price=filters.max_price,
            location=filters.location or None,
            text=resolution.text,
            seller_id=filters.seller_id or None,
        )

    def list_listings(self, filters=None, sort: Optional[str] = None, page: Any = None, limit: Any = None) -> ListingPage:
        filters: ListingFilters = parse_input(ListingFilters, filters or {})
        order_by = build_order(sort)
        page = clamp_page(page)
        limit = clamp_limit(limit, self.settings.default_page_size, self.settings.max_page_size)
        now = self.clock.now()

        with session_scope(self.session_factory, "list_listings") as db:
            facets = self.plan(db, filters)
            total, items = crud.query_listings(
                db,
                where=build_predicate(facets, now),
                order_by=order_by,
                offset=(page - 1) * limit,
                limit=limit,
            )
        return ListingPage(items=items, total_count=total, page=page, limit=limit)

    # ---- discovery sections -------------------------------------------------

    def homepage(self) -> HomepageSections:
        """Featured, trending and recently sold strips plus the visible-listing count."""
        now = self.clock.now()
        visible = build_predicate(Facets(), now)
        # sold listings are never active, so this strip only applies the time checks
        sold = [Listing.is_sold.is_(True), crud.not_gone(now)]

        with session_scope(self.session_factory, "homepage") as db:
            _, featured = crud.query_listings(
                db, visible, build_order("newest"), offset=0, limit=FEATURED_LIMIT)
            _, trending = crud.query_listings(
                db, visible, [Listing.views.desc(), Listing.created_at.desc(), Listing.id.asc()],
                offset=0, limit=TRENDING_LIMIT)
            _, recently_sold = crud.query_listings(
                db, sold, [Listing.updated_at.desc(), Listing.id.asc()],
                offset=0, limit=RECENTLY_SOLD_LIMIT)
            total_active = crud.count_listings(db, visible)

        return HomepageSections(featured, trending, recently_sold, total_active)

    def popular_brands(self, category_slug: Optional[str] = None, limit: Any = None) -> List[Tuple[str, int]]:
        limit = clamp_limit(limit, BRAND_LIMIT, self.settings.max_page_size)
        now = self.clock.now()
        with session_scope(self.session_factory, "popular_brands") as db:
            category_id = None
            if category_slug:
                category = crud.get_category_by_slug(db, category_slug)
                if category is None:
                    raise NotFoundError("Category", category_slug)
                category_id = category.id
            where = build_predicate(Facets(category_id=category_id), now)
            return crud.brand_counts(db, where, limit)

    def category_summary(self, slug: str) -> CategorySummary:
        now = self.clock.now()
        with session_scope(self.session_factory, "category_summary") as db:
            category = crud.get_category_by_slug(db, slug)
            if category is None:
                raise NotFoundError("Category", slug)
            count = crud.count_listings(db, build_predicate(Facets(category_id=category.id), now))
        return CategorySummary(category=category, listing_count=count)
