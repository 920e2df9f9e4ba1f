"""CRUD operations for users, vehicles, search history, saved searches and
favorites.

Vehicle inserts are guarded by the (source, external_id) unique constraint:
when two writers race on the same listing, the loser re-reads and returns
the row that won.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import User, Vehicle, SearchQuery, SavedSearch, UserFavorite
from .schemas import StructuredFilters, VehicleCreate, UserCreate
from .utils import logger

STORE_RESULT_LIMIT = 50
TRIAL_DAYS = 183


class DuplicateUserError(Exception):
    pass


# users

def create_user(db: Session, data: UserCreate) -> User:
    now = datetime.now(timezone.utc)
    user = User(
        **data.model_dump(),
        trial_start_date=now,
        trial_end_date=now + timedelta(days=TRIAL_DAYS),
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateUserError(f"user {data.firebase_uid} already exists") from e
    db.refresh(user)
    return user

def get_user_by_firebase_uid(db: Session, firebase_uid: str) -> Optional[User]:
    return db.query(User).filter(User.firebase_uid == firebase_uid).first()


# vehicles

def get_vehicle(db: Session, vehicle_id: int) -> Optional[Vehicle]:
    return db.get(Vehicle, vehicle_id)

def get_vehicle_by_external_id(db: Session, source: str, external_id: str) -> Optional[Vehicle]:
    return (
        db.query(Vehicle)
        .filter(Vehicle.source == source, Vehicle.external_id == external_id)
        .first()
    )

def list_vehicles_by_filters(
    db: Session,
    filters: Optional[StructuredFilters] = None,
    source: Optional[str] = None,
    external_id: Optional[str] = None,
    limit: int = STORE_RESULT_LIMIT,
) -> List[Vehicle]:
    q = db.query(Vehicle)
    conds = [Vehicle.is_active.is_(True)]
    if filters is not None:
        if filters.make:
            conds.append(Vehicle.make.ilike(f"%{filters.make}%"))
        if filters.model:
            conds.append(Vehicle.model.ilike(f"%{filters.model}%"))
        if filters.min_year is not None:
            conds.append(Vehicle.year >= filters.min_year)
        if filters.max_year is not None:
            conds.append(Vehicle.year <= filters.max_year)
        if filters.min_price is not None:
            conds.append(Vehicle.current_bid >= filters.min_price)
        if filters.max_price is not None:
            conds.append(Vehicle.current_bid <= filters.max_price)
        if filters.damage_type:
            conds.append(Vehicle.damage_type.ilike(f"%{filters.damage_type}%"))
        if filters.location:
            conds.append(Vehicle.location.ilike(f"%{filters.location}%"))
    if source:
        conds.append(Vehicle.source == source)
    if external_id:
        conds.append(Vehicle.external_id == external_id)
    q = q.filter(and_(*conds))
    return q.order_by(Vehicle.created_at.desc(), Vehicle.id.desc()).limit(limit).all()

def insert_vehicle(db: Session, data: VehicleCreate) -> Tuple[Vehicle, bool]:
    """Insert a vehicle; returns the stored row and whether this call created it."""
    obj = Vehicle(**data.model_dump())
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_vehicle_by_external_id(db, data.source, data.external_id)
        if existing is None:
            raise
        logger.info("Vehicle %s/%s inserted concurrently, reusing id %s",
                    data.source, data.external_id, existing.id)
        return existing, False
    db.refresh(obj)
    return obj, True

def create_vehicle(db: Session, data: VehicleCreate) -> Vehicle:
    return insert_vehicle(db, data)[0]


# search history

def create_search_query(db: Session, user_id: int, query: str,
                        filters: StructuredFilters, result_count: int) -> SearchQuery:
    obj = SearchQuery(
        user_id=user_id,
        query=query,
        parsed_filters=filters.as_dict(),
        result_count=result_count,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_user_search_history(db: Session, user_id: int, limit: int = 10) -> List[SearchQuery]:
    return (
        db.query(SearchQuery)
        .filter(SearchQuery.user_id == user_id)
        .order_by(SearchQuery.created_at.desc(), SearchQuery.id.desc())
        .limit(limit)
        .all()
    )


# saved searches

def create_saved_search(db: Session, user_id: int, name: str, query: str,
                        filters: StructuredFilters, alerts_enabled: bool = False) -> SavedSearch:
    obj = SavedSearch(
        user_id=user_id,
        name=name,
        query=query,
        parsed_filters=filters.as_dict(),
        alerts_enabled=alerts_enabled,
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def get_user_saved_searches(db: Session, user_id: int) -> List[SavedSearch]:
    return (
        db.query(SavedSearch)
        .filter(SavedSearch.user_id == user_id)
        .order_by(SavedSearch.created_at.desc(), SavedSearch.id.desc())
        .all()
    )

def get_user_saved_search(db: Session, user_id: int, saved_search_id: int) -> Optional[SavedSearch]:
    return (
        db.query(SavedSearch)
        .filter(SavedSearch.id == saved_search_id, SavedSearch.user_id == user_id)
        .first()
    )

def update_saved_search(db: Session, user_id: int, saved_search_id: int,
                        updates: Dict[str, Any]) -> Optional[SavedSearch]:
    obj = get_user_saved_search(db, user_id, saved_search_id)
    if not obj:
        return None
    for k, v in updates.items():
        if k == "parsed_filters" and isinstance(v, StructuredFilters):
            v = v.as_dict()
        setattr(obj, k, v)
    db.commit()
    db.refresh(obj)
    return obj

def delete_saved_search(db: Session, user_id: int, saved_search_id: int) -> bool:
    obj = get_user_saved_search(db, user_id, saved_search_id)
    if not obj:
        return False
    db.delete(obj)
    db.commit()
    return True


# favorites

def add_user_favorite(db: Session, user_id: int, vehicle_id: int) -> UserFavorite:
    existing = (
        db.query(UserFavorite)
        .filter(UserFavorite.user_id == user_id, UserFavorite.vehicle_id == vehicle_id)
        .first()
    )
    if existing:
        return existing
    obj = UserFavorite(user_id=user_id, vehicle_id=vehicle_id)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj

def remove_user_favorite(db: Session, user_id: int, vehicle_id: int) -> bool:
    obj = (
        db.query(UserFavorite)
        .filter(UserFavorite.user_id == user_id, UserFavorite.vehicle_id == vehicle_id)
        .first()
    )
    if not obj:
        return False
    db.delete(obj)
    db.commit()
    return True

def get_user_favorites(db: Session, user_id: int) -> List[Vehicle]:
    return (
        db.query(Vehicle)
        .join(UserFavorite, UserFavorite.vehicle_id == Vehicle.id)
        .filter(UserFavorite.user_id == user_id)
        .order_by(UserFavorite.created_at.desc(), UserFavorite.id.desc())
        .all()
    )

def is_user_favorite(db: Session, user_id: int, vehicle_id: int) -> bool:
    return (
        db.query(UserFavorite.id)
        .filter(UserFavorite.user_id == user_id, UserFavorite.vehicle_id == vehicle_id)
        .first()
    ) is not None
