# Pydantic models (request/response DTOs) used by the API layer.
# Wire field names follow the public API (apartment_id, price, start_date, ...).
from datetime import date, datetime
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import BookingStatus

T = TypeVar("T")


def _strip(v):
    if isinstance(v, str):
        v = v.strip()
    return v


def _normalize_email(v):
    if isinstance(v, str):
        v = v.strip().lower()
    return v


# Envelopes: every JSON body carries success + message, lists add count
class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ListEnvelope(BaseModel, Generic[T]):
    success: bool = True
    count: int
    data: List[T]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# Users and authentication

class UserRead(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileRead(UserRead):
    created_at: datetime


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    password: str = Field(..., min_length=6)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class AuthData(BaseModel):
    user: UserRead
    token: str


# Apartments (listings)

class ApartmentBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: int = Field(..., gt=0)
    location: str = Field(..., min_length=1, max_length=120)
    region: str = Field(..., min_length=1, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    bedrooms: int = Field(1, ge=0)
    bathrooms: int = Field(1, ge=0)
    area: Optional[int] = Field(None, ge=0)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    image_url: Optional[str] = Field(None, max_length=500)

    @field_validator("title", "location", "region", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class ApartmentCreate(ApartmentBase):
    available: bool = True


class ApartmentUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[int] = Field(None, gt=0)
    location: Optional[str] = Field(None, min_length=1, max_length=120)
    region: Optional[str] = Field(None, min_length=1, max_length=120)
    address: Optional[str] = Field(None, max_length=255)
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    area: Optional[int] = Field(None, ge=0)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    available: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)


class ApartmentRead(ApartmentBase):
    id: int
    owner_id: Optional[int] = None
    available: bool
    created_at: datetime
    rating: float = 0
    review_count: int = 0
    favorite: Optional[bool] = None

    model_config = ConfigDict(from_attributes=True)


SortBy = Literal["newest", "price-low", "price-high", "rating"]


# Reviews

class ReviewCreate(BaseModel):
    apartment_id: int = Field(..., ge=1)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewRead(BaseModel):
    id: int
    user_id: int
    apartment_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    user_name: Optional[str] = None
    apartment_title: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewStats(BaseModel):
    total_reviews: int
    average_rating: float


class ApartmentReviews(BaseModel):
    reviews: List[ReviewRead]
    stats: ReviewStats


class ApartmentDetail(ApartmentRead):
    reviews: List[ReviewRead] = []


# Bookings

class BookingCreate(BaseModel):
    apartment_id: int = Field(..., ge=1)
    start_date: date
    end_date: date
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)

    @field_validator("name", "phone", mode="before")
    @classmethod
    def strip_contact(cls, v):
        return _strip(v)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class BookingRead(BaseModel):
    id: int
    user_id: int
    apartment_id: int
    start_date: date
    end_date: date
    status: BookingStatus
    total_price: int
    name: str
    email: str
    phone: str
    created_at: datetime
    updated_at: datetime
    apartment_title: Optional[str] = None
    location: Optional[str] = None
    region: Optional[str] = None
    image_url: Optional[str] = None
    monthly_price: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)
