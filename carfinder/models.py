# carfinder/models.py
"""SQLAlchemy ORM models for dealers, listings, price history and saved searches.

Listings are written only by feed ingestion and price-history rows only by the
snapshot job; neither is edited through the API.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, Text, Float, TIMESTAMP, ForeignKey, UniqueConstraint, Index, JSON, func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from .db import Base

JSONType = JSON().with_variant(JSONB, "postgresql")

ROLE_STAFF = "staff"
ROLE_DEALER = "dealer"
ROLE_BUYER = "buyer"

MEMBERSHIP_OWNER = "owner"
MEMBERSHIP_MEMBER = "member"
MEMBERSHIP_VIEWER = "viewer"

SELLER_DEALER = "dealer"
SELLER_PRIVATE = "private"

NOTIFY_DAILY = "daily"
NOTIFY_WEEKLY = "weekly"
NOTIFY_OFF = "off"


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(Text, unique=True)
    name = Column(Text)
    role = Column(Text, nullable=False, default=ROLE_BUYER)
    api_key = Column(Text, unique=True, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    memberships = relationship("DealerMembership", back_populates="user", cascade="all, delete-orphan")
    saved_searches = relationship("SavedSearch", back_populates="user", cascade="all, delete-orphan")


class Dealer(Base):
    __tablename__ = "dealers"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text)
    phone = Column(Text)
    website = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    memberships = relationship("DealerMembership", back_populates="dealer", cascade="all, delete-orphan")
    listings = relationship("Listing", back_populates="dealer")


class DealerMembership(Base):
    __tablename__ = "dealer_memberships"
    __table_args__ = (UniqueConstraint("dealer_id", "user_id", name="uq_dealer_memberships_dealer_user"),)
    id = Column(Integer, primary_key=True)
    dealer_id = Column(Integer, ForeignKey("dealers.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(Text, nullable=False, default=MEMBERSHIP_MEMBER)

    dealer = relationship("Dealer", back_populates="memberships")
    user = relationship("User", back_populates="memberships")


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (UniqueConstraint("source", "source_id", name="uq_listings_source_source_id"),)
    id = Column(Integer, primary_key=True, index=True)
    source = Column(Text, nullable=False)
    source_id = Column(Text, nullable=False)
    hash_signature = Column(Text, nullable=False, index=True)
    vin = Column(Text, index=True)
    title = Column(Text)
    year = Column(Integer)
    make = Column(Text)
    model = Column(Text)
    trim = Column(Text)
    price = Column(Integer)
    mileage = Column(Integer)
    body = Column(Text)
    drivetrain = Column(Text)
    transmission = Column(Text)
    fuel = Column(Text)
    color_ext = Column(Text)
    color_int = Column(Text)
    city = Column(Text)
    state = Column(Text)
    lat = Column(Float)
    lon = Column(Float)
    url = Column(Text)
    phone = Column(Text)
    images = Column(JSONType, nullable=False, default=list)
    seller_type = Column(Text, nullable=False, default=SELLER_DEALER)
    dealer_id = Column(Integer, ForeignKey("dealers.id"), index=True)
    posted_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow)

    dealer = relationship("Dealer", back_populates="listings")
    price_history = relationship(
        "PriceHistory", back_populates="listing", order_by="PriceHistory.captured_at"
    )


class PriceHistory(Base):
    __tablename__ = "price_history"
    id = Column(Integer, primary_key=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False)
    price = Column(Integer, nullable=False)
    captured_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    listing = relationship("Listing", back_populates="price_history")


class SavedSearch(Base):
    __tablename__ = "saved_searches"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    query_json = Column(JSONType, nullable=False)
    zip = Column(Text)
    radius_miles = Column(Integer, nullable=False, default=50)
    notify = Column(Text, nullable=False, default=NOTIFY_DAILY)
    last_notified_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="saved_searches")

Index("idx_listings_price", Listing.price)
Index("idx_listings_year", Listing.year)
Index("idx_listings_updated_at", Listing.updated_at)
Index("idx_price_history_listing_captured", PriceHistory.listing_id, PriceHistory.captured_at)
