from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime

class StructuredFilters(BaseModel):
    """Search constraints derived from free text. A field left unset means
    "unconstrained"; nothing here has a default value."""
    model_config = ConfigDict(extra="ignore")

    make: Optional[str] = Field(None, min_length=1)
    model: Optional[str] = Field(None, min_length=1)
    min_year: Optional[int] = Field(None, gt=1900)
    max_year: Optional[int] = Field(None, gt=1900)
    min_price: Optional[float] = Field(None, gt=0)
    max_price: Optional[float] = Field(None, gt=0)
    damage_type: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1)
    keywords: Optional[List[str]] = None

    def is_empty(self) -> bool:
        return not self.as_dict()

    def as_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

class VehicleBase(BaseModel):
    external_id: str
    source: str
    title: str
    make: str
    model: str
    year: int
    vin: Optional[str] = None
    mileage: Optional[int] = None
    current_bid: Optional[float] = None
    buy_it_now_price: Optional[float] = None
    damage_type: Optional[str] = None
    location: Optional[str] = None
    auction_date: Optional[datetime] = None
    auction_end_date: Optional[datetime] = None
    image_urls: List[str] = Field(default_factory=list)
    auction_url: Optional[str] = None
    is_active: bool = True

class VehicleCreate(VehicleBase):
    pass

class VehicleOut(VehicleBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    image_urls: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class UserCreate(BaseModel):
    firebase_uid: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

class UserOut(UserCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

class SearchRequest(BaseModel):
    query: str

class SearchResponse(BaseModel):
    query: str
    parsed_filters: StructuredFilters
    results: List[VehicleOut]
    count: int

class SearchHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    query: str
    parsed_filters: Optional[StructuredFilters] = None
    result_count: Optional[int] = 0
    is_bookmarked: Optional[bool] = False
    created_at: Optional[datetime] = None

class SavedSearchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    query: str = Field(..., min_length=1)
    parsed_filters: Optional[StructuredFilters] = None
    alerts_enabled: bool = False

class SavedSearchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    query: Optional[str] = Field(None, min_length=1)
    parsed_filters: Optional[StructuredFilters] = None
    alerts_enabled: Optional[bool] = None

class SavedSearchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    query: str
    parsed_filters: Optional[StructuredFilters] = None
    alerts_enabled: Optional[bool] = False
    last_run_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class SavedSearchRunOut(BaseModel):
    query: str
    results: List[VehicleOut]
    count: int

class FavoriteCreate(BaseModel):
    vehicle_id: int

class FavoriteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vehicle_id: int
    created_at: Optional[datetime] = None
