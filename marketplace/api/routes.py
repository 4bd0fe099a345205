# marketplace/api/routes.py
from fastapi import APIRouter, Depends, Query, Request, Response
from typing import Any, Dict, List, Optional
from .. import schemas
from ..auth import Identity, current_identity
from ..lifecycle import LifecycleManager
from ..query import QueryPlanner
from ..scheduler import SweepScheduler

router = APIRouter()


def get_manager(request: Request) -> LifecycleManager:
    return request.app.state.manager

def get_planner(request: Request) -> QueryPlanner:
    return request.app.state.planner

def get_sweeper(request: Request) -> SweepScheduler:
    return request.app.state.sweeper


@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/categories", response_model=List[schemas.CategoryOut])
def categories(planner: QueryPlanner = Depends(get_planner)):
    return planner.list_categories()


@router.get("/categories/brands", response_model=schemas.BrandsOut)
def brands(
    category_slug: Optional[str] = Query(None, alias="categorySlug"),
    limit: Optional[str] = Query(None),
    planner: QueryPlanner = Depends(get_planner),
):
    return _brands(planner, category_slug, limit)

@router.get("/categories/{slug}/brands", response_model=schemas.BrandsOut)
def category_brands(slug: str, limit: Optional[str] = Query(None), planner: QueryPlanner = Depends(get_planner)):
    return _brands(planner, slug, limit)

def _brands(planner: QueryPlanner, category_slug: Optional[str], limit) -> schemas.BrandsOut:
    counts = planner.popular_brands(category_slug, limit=limit)
    return schemas.BrandsOut(
        brands=[schemas.BrandCountOut(name=name, count=n) for name, n in counts],
        category_slug=category_slug,
    )

@router.get("/categories/{slug}", response_model=schemas.CategoryDetailOut)
def category_detail(slug: str, planner: QueryPlanner = Depends(get_planner)):
    summary = planner.category_summary(slug)
    return schemas.CategoryDetailOut(
        **schemas.CategoryOut.model_validate(summary.category).model_dump(),
        listing_count=summary.listing_count,
    )

@router.get("/homepage", response_model=schemas.HomepageOut)
def homepage(response: Response, planner: QueryPlanner = Depends(get_planner)):
    sections = planner.homepage()
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    return schemas.HomepageOut(
        featured=[schemas.ListingOut.model_validate(x) for x in sections.featured],
        trending=[schemas.ListingOut.model_validate(x) for x in sections.trending],
        recently_sold=[schemas.ListingOut.model_validate(x) for x in sections.recently_sold],
        total_active=sections.total_active,
    )


@router.get("/listings", response_model=schemas.ListingPageOut)
def listings(
    response: Response,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    category_slug: Optional[str] = Query(None, alias="categorySlug"),
    part_type: Optional[str] = Query(None, alias="partType"),
    brand: Optional[str] = Query(None),
    condition: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    location: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    seller_id: Optional[str] = Query(None, alias="sellerId"),
    is_active: Optional[str] = Query(None, alias="isActive"),
    sort: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    planner: QueryPlanner = Depends(get_planner),
):
    filters = {
        "category_id": category_id,
        "category_slug": category_slug,
        "part_type": part_type,
        "brand": brand,
        "condition": condition,
        "min_price": min_price,
        "max_price": max_price,
        "location": location,
        "search": search,
        "seller_id": seller_id,
        "is_active": is_active,
    }
    # raw strings; the planner reports malformed values as VALIDATION_ERROR
    filters = {k: v for k, v in filters.items() if v is not None}
    res = planner.list_listings(filters, sort=sort, page=page, limit=limit)
    # the feed changes under every sweep; never serve it from a cache
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    return schemas.ListingPageOut(
        items=[schemas.ListingOut.model_validate(item) for item in res.items],
        total_count=res.total_count,
        page=res.page,
        limit=res.limit,
        total_pages=res.total_pages,
    )


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: str, manager: LifecycleManager = Depends(get_manager)):
    return manager.get(listing_id)


@router.post("/listings", response_model=schemas.ListingOut, status_code=201)
def create_listing(
    payload: Dict[str, Any],
    user: Identity = Depends(current_identity),
    manager: LifecycleManager = Depends(get_manager),
):
    return manager.create(user.id, payload)


@router.patch("/listings/{listing_id}", response_model=schemas.ListingOut)
def update_listing(
    listing_id: str,
    payload: Dict[str, Any],
    user: Identity = Depends(current_identity),
    manager: LifecycleManager = Depends(get_manager),
):
    return manager.update(listing_id, user.id, payload)


@router.post("/listings/{listing_id}/sold", response_model=schemas.ListingOut)
def mark_sold(
    listing_id: str,
    user: Identity = Depends(current_identity),
    manager: LifecycleManager = Depends(get_manager),
):
    return manager.mark_sold(listing_id, user.id)


@router.delete("/listings/{listing_id}")
def delete_listing(
    listing_id: str,
    user: Identity = Depends(current_identity),
    manager: LifecycleManager = Depends(get_manager),
):
    manager.soft_delete(listing_id, user.id)
    return {"status": "deleted"}


@router.post("/listings/{listing_id}/view", response_model=schemas.ViewCountOut)
def increment_view(listing_id: str, manager: LifecycleManager = Depends(get_manager)):
    return {"views": manager.increment_view(listing_id)}


@router.post("/sweep", response_model=schemas.SweepResultOut)
def trigger_sweep(sweeper: SweepScheduler = Depends(get_sweeper)):
    # runs inline; unlike the timer tick, a failure here is the caller's error
    result = sweeper.manager.sweep()
    return schemas.SweepResultOut(deactivated=result.deactivated, purged=result.purged, ran_at=result.ran_at)
