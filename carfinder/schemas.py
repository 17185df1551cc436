# carfinder/schemas.py
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

NotifyCadence = Literal["daily", "weekly", "off"]


class ListingOut(BaseModel):
    id: int
    source: str
    source_id: str
    vin: Optional[str] = None
    title: Optional[str] = None
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    price: Optional[int] = None
    mileage: Optional[int] = None
    body: Optional[str] = None
    drivetrain: Optional[str] = None
    transmission: Optional[str] = None
    fuel: Optional[str] = None
    color_ext: Optional[str] = None
    color_int: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    url: Optional[str] = None
    phone: Optional[str] = None
    images: List[str] = []
    seller_type: str
    dealer_id: Optional[int] = None
    posted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SearchCursor(BaseModel):
    page: int
    page_size: int
    sort: str


class SearchMeta(BaseModel):
    total_count: int
    page: int
    page_size: int
    sort: str
    has_next_page: bool
    next_cursor: Optional[SearchCursor] = None


class ListingPage(BaseModel):
    data: List[ListingOut]
    meta: SearchMeta


class PricePoint(BaseModel):
    price: int
    captured_at: datetime


class PriceHistoryOut(BaseModel):
    history: List[PricePoint]


class IngestResponse(BaseModel):
    message: str
    created: int
    updated: int


class DealerCreate(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    @field_validator("name", "email", "phone", "website", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class DealerOut(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    class Config:
        from_attributes = True


class SearchFilters(BaseModel):
    make: str = ""
    model: str = ""
    min_year: int = Field(..., ge=1900, le=2100)
    max_price: int = Field(..., ge=0)
    max_miles: int = Field(..., ge=0)

    @field_validator("make", "model", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v


class SaveSearchPayload(BaseModel):
    filters: SearchFilters
    zip: Optional[str] = Field(None, min_length=3, max_length=10)
    radius_miles: int = Field(50, ge=1, le=1000)
    notify: NotifyCadence = "daily"

    @field_validator("zip", mode="before")
    @classmethod
    def strip_zip(cls, v):
        return v.strip() if isinstance(v, str) else v


class SavedSearchOut(BaseModel):
    id: int
    filters: SearchFilters
    zip: Optional[str] = None
    radius_miles: int
    notify: NotifyCadence
    last_notified_at: Optional[datetime] = None


class VinDecodeOut(BaseModel):
    vin: str
    result: Dict[str, Any]


class RecallsOut(BaseModel):
    count: int
    results: List[Dict[str, Any]] = []


class PriceHistoryRun(BaseModel):
    processed: int
    inserted: int
    skipped: int
    timestamp: str


class AlertError(BaseModel):
    search_id: int
    message: str


class AlertRun(BaseModel):
    processed: int
    emails_sent: int
    skipped: int
    errors: List[AlertError] = []
