# marketplace/schemas.py
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, List, Literal, Optional
from decimal import Decimal
from datetime import datetime

Condition = Literal["new", "used", "refurbished"]


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


RequiredText = Annotated[str, AfterValidator(_strip_required)]


class ListingCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=2000)
    category_id: RequiredText
    brand: Optional[str] = None
    model: Optional[str] = None
    condition: Condition
    price: Decimal = Field(..., ge=0, decimal_places=2)
    location: RequiredText
    images: List[str] = Field(default_factory=list)


class ListingUpdate(BaseModel):
    """Owner-editable fields. Anything server-computed is rejected as an extra field.

    Omitting a field leaves it alone; only ``brand`` and ``model`` may be cleared with null.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    brand: Optional[str] = None
    model: Optional[str] = None
    condition: Optional[Condition] = None
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    location: Optional[RequiredText] = None
    images: Optional[List[str]] = None

    @field_validator("title", "description", "condition", "price", "location", "images")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    display_name: str
    color: Optional[str] = None


class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    category_id: str
    category: Optional[CategoryOut] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    condition: str
    price: Decimal
    location: str
    images: List[str]
    seller_id: str
    views: int
    is_active: bool
    is_sold: bool
    is_boosted: bool
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class ListingFilters(BaseModel):
    category_id: Optional[str] = None
    category_slug: Optional[str] = None
    part_type: Optional[str] = None
    brand: Optional[str] = None
    condition: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    location: Optional[str] = None
    search: Optional[str] = None
    seller_id: Optional[str] = None
    is_active: bool = True


class ListingPageOut(BaseModel):
    items: List[ListingOut]
    total_count: int
    page: int
    limit: int
    total_pages: int


class ViewCountOut(BaseModel):
    views: Optional[int]


class SweepResultOut(BaseModel):
    deactivated: int
    purged: int
    ran_at: datetime


class HomepageOut(BaseModel):
    featured: List[ListingOut]
    trending: List[ListingOut]
    recently_sold: List[ListingOut]
    total_active: int


class BrandCountOut(BaseModel):
    name: str
    count: int


class BrandsOut(BaseModel):
    brands: List[BrandCountOut]
    category_slug: Optional[str] = None


class CategoryDetailOut(CategoryOut):
    listing_count: int
