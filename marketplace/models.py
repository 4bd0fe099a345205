# marketplace/models.py
"""SQLAlchemy ORM models for persisted entities.

Defines `Category` and `Listing`. Timestamps are naive UTC, written by the
lifecycle manager from its clock rather than by the database server so that a
single ``now`` governs each operation.
"""
import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship
from .db import Base

CONDITIONS = ("new", "used", "refurbished")


def _new_id() -> str:
    return str(uuid.uuid4())


class Category(Base):
    __tablename__ = "categories"
    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(64), nullable=False, unique=True)
    slug = Column(String(64), nullable=False, unique=True, index=True)
    display_name = Column(String(128), nullable=False)
    color = Column(String(16))
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<Category {self.slug}>"


class Listing(Base):
    __tablename__ = "listings"
    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False, index=True)
    brand = Column(Text)
    model = Column(Text)
    condition = Column(String(16), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    location = Column(Text, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    seller_id = Column(String(64), nullable=False, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_sold = Column(Boolean, nullable=False, default=False)
    is_boosted = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    # NULL on both means a legacy row that never expires
    expires_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    category = relationship(Category, lazy="joined")

    def __repr__(self):
        return f"<Listing {self.id} active={self.is_active} sold={self.is_sold}>"


Index("idx_listings_feed", Listing.is_active, Listing.is_sold, Listing.is_boosted, Listing.created_at)
Index("idx_listings_price", Listing.price)
Index("idx_listings_expires_at", Listing.expires_at)
Index("idx_listings_deleted_at", Listing.deleted_at)
