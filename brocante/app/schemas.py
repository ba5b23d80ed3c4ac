from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from brocante.app.core.constants import PRODUCT_CATEGORIES, MAX_PRODUCT_IMAGES


def _check_category(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in PRODUCT_CATEGORIES:
        raise ValueError(f"category must be one of {', '.join(PRODUCT_CATEGORIES)}")
    return v


# --- Produkte ---
class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    category: str
    image_urls: List[str] = Field(default_factory=list, max_length=MAX_PRODUCT_IMAGES)
    is_available: bool = True
    is_pinned: bool = False

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return _check_category(v)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[str] = None
    image_urls: Optional[List[str]] = Field(default=None, max_length=MAX_PRODUCT_IMAGES)
    is_available: Optional[bool] = None
    is_pinned: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v)


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: str
    price: Decimal
    category: str
    image_urls: List[str]
    is_available: bool
    is_pinned: bool
    created_at: datetime
    sold_at: Optional[datetime] = None


# --- Reservierungen ---
class ReservationCreate(BaseModel):
    product_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=1, max_length=200)
    customer_phone: str = Field(min_length=1, max_length=50)
    # ISO-8601, parsed by ReservationService so every caller gets the same rules
    pickup_time: str = Field(min_length=1)


class ReservationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    product_id: str
    customer_name: str
    customer_phone: str
    pickup_time: datetime
    status: str
    created_at: datetime
    expires_at: datetime


class ReservationStatusUpdate(BaseModel):
    status: Optional[str] = None


class AdminReservationResponse(ReservationResponse):
    product_name: Optional[str] = None
    product_price: Optional[Decimal] = None
    product_cover_image: Optional[str] = None


# --- Abholzeiten ---
class PickupSlotResponse(BaseModel):
    datetime: str
    display: str
    value: str


# --- FAQ ---
class FaqCreate(BaseModel):
    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    order: int = 0


class FaqResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    question: str
    answer: str
    order: int
