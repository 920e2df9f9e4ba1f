from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas, services
from ..auth import require_user
from ..db import get_db
from ..extractor import FilterExtractor
from ..models import User
from ..utils import logger

router = APIRouter(prefix="/api")

def get_marketplace_client():
    return services.get_marketplace_client()

@router.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


# users

@router.post("/users", response_model=schemas.UserOut)
def create_user(payload: schemas.UserCreate, db: Session = Depends(get_db)):
    try:
        return crud.create_user(db, payload)
    except crud.DuplicateUserError:
        raise HTTPException(status_code=409, detail="User already exists")

@router.get("/users/me", response_model=schemas.UserOut)
def me(user: User = Depends(require_user)):
    return user


# search

@router.post("/search", response_model=schemas.SearchResponse)
def search(
    payload: schemas.SearchRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    extractor: FilterExtractor = Depends(services.get_extractor),
    client=Depends(get_marketplace_client),
):
    if not payload.query.strip():
        raise HTTPException(status_code=400, detail="Query is required")
    try:
        return services.run_search(db, user, payload.query, extractor=extractor, client=client)
    except Exception as e:
        logger.exception("Search failed: %s", e)
        raise HTTPException(status_code=500, detail="Search failed. Please try again.")

@router.get("/search/history", response_model=List[schemas.SearchHistoryOut])
def search_history(
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return crud.get_user_search_history(db, user.id, limit=limit)


# saved searches

@router.post("/saved-searches", response_model=schemas.SavedSearchOut)
def create_saved_search(
    payload: schemas.SavedSearchCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    extractor: FilterExtractor = Depends(services.get_extractor),
):
    filters = payload.parsed_filters or extractor.extract(payload.query)
    return crud.create_saved_search(db, user.id, payload.name, payload.query,
                                    filters, payload.alerts_enabled)

@router.get("/saved-searches", response_model=List[schemas.SavedSearchOut])
def list_saved_searches(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return crud.get_user_saved_searches(db, user.id)

@router.put("/saved-searches/{saved_search_id}", response_model=schemas.SavedSearchOut)
def update_saved_search(
    saved_search_id: int,
    payload: schemas.SavedSearchUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    updates = payload.model_dump(exclude_unset=True)
    if "parsed_filters" in updates:
        updates["parsed_filters"] = payload.parsed_filters or schemas.StructuredFilters()
    obj = crud.update_saved_search(db, user.id, saved_search_id, updates)
    if not obj:
        raise HTTPException(status_code=404, detail="Saved search not found")
    return obj

@router.delete("/saved-searches/{saved_search_id}")
def delete_saved_search(saved_search_id: int, user: User = Depends(require_user),
                        db: Session = Depends(get_db)):
    if not crud.delete_saved_search(db, user.id, saved_search_id):
        raise HTTPException(status_code=404, detail="Saved search not found")
    return {"success": True}

@router.post("/saved-searches/{saved_search_id}/run", response_model=schemas.SavedSearchRunOut)
def run_saved_search(
    saved_search_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    client=Depends(get_marketplace_client),
):
    saved = crud.get_user_saved_search(db, user.id, saved_search_id)
    if not saved:
        raise HTTPException(status_code=404, detail="Saved search not found")
    try:
        return services.run_saved_search(db, saved, client=client)
    except Exception as e:
        logger.exception("Saved search %s failed: %s", saved_search_id, e)
        raise HTTPException(status_code=500, detail="Failed to run saved search")


# favorites

@router.post("/favorites", response_model=schemas.FavoriteOut)
def add_favorite(payload: schemas.FavoriteCreate, user: User = Depends(require_user),
                 db: Session = Depends(get_db)):
    if not crud.get_vehicle(db, payload.vehicle_id):
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return crud.add_user_favorite(db, user.id, payload.vehicle_id)

@router.get("/favorites", response_model=List[schemas.VehicleOut])
def list_favorites(user: User = Depends(require_user), db: Session = Depends(get_db)):
    return crud.get_user_favorites(db, user.id)

@router.delete("/favorites/{vehicle_id}")
def remove_favorite(vehicle_id: int, user: User = Depends(require_user),
                    db: Session = Depends(get_db)):
    if not crud.remove_user_favorite(db, user.id, vehicle_id):
        raise HTTPException(status_code=404, detail="Favorite not found")
    return {"success": True}


# vehicles

@router.get("/vehicles/{vehicle_id}", response_model=schemas.VehicleOut)
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    obj = crud.get_vehicle(db, vehicle_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return obj

@router.post("/sync")
def trigger_sync(db: Session = Depends(get_db), client=Depends(get_marketplace_client)):
    inserted = services.sync_recent_listings(db, client=client)
    return {"status": "ok", "inserted": inserted}
