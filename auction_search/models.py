"""SQLAlchemy ORM models for persisted entities.

Vehicles are shared across users; search history, saved searches and
favorites are owned by a user.
"""
from sqlalchemy import (
    Column, Integer, Text, Numeric, Boolean, TIMESTAMP, ForeignKey, JSON,
    UniqueConstraint, func, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from .db import Base

# JSONB on postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(Text, nullable=False, unique=True, index=True)
    email = Column(Text, nullable=False, unique=True)
    display_name = Column(Text)
    photo_url = Column(Text)
    trial_start_date = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    trial_end_date = Column(TIMESTAMP(timezone=True), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = (
        UniqueConstraint("source", "external_id", name="uq_vehicles_source_external_id"),
    )
    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(Text, nullable=False)
    source = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    make = Column(Text, nullable=False)
    model = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)
    vin = Column(Text)
    mileage = Column(Integer)
    current_bid = Column(Numeric(10, 2, asdecimal=False))
    buy_it_now_price = Column(Numeric(10, 2, asdecimal=False))
    damage_type = Column(Text)
    location = Column(Text)
    auction_date = Column(TIMESTAMP(timezone=True))
    auction_end_date = Column(TIMESTAMP(timezone=True))
    image_urls = Column(JSONType, default=list)
    auction_url = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class SearchQuery(Base):
    __tablename__ = "search_queries"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    query = Column(Text, nullable=False)
    parsed_filters = Column(JSONType)
    result_count = Column(Integer, default=0)
    is_bookmarked = Column(Boolean, default=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())


class SavedSearch(Base):
    __tablename__ = "saved_searches"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    query = Column(Text, nullable=False)
    parsed_filters = Column(JSONType)
    alerts_enabled = Column(Boolean, default=False)
    last_run_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())


class UserFavorite(Base):
    __tablename__ = "user_favorites"
    __table_args__ = (
        UniqueConstraint("user_id", "vehicle_id", name="uq_user_favorites_user_vehicle"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

Index("idx_vehicles_make_model", Vehicle.make, Vehicle.model)
Index("idx_vehicles_year", Vehicle.year)
Index("idx_vehicles_current_bid", Vehicle.current_bid)
