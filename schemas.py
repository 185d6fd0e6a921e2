# schemas.py
# JSON bodies are camelCase (carId, pricePerDay), table models in models.py stay snake_case

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

import settings
from models import BookingStatus, CarStatus, CarType, FuelType, Transmission, UserRole


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------- Cars ----------

_url_adapter = TypeAdapter(HttpUrl)


def _check_year(v: Optional[int]) -> Optional[int]:
    if v is None:
        return v
    latest = date.today().year + 1
    if not settings.MIN_CAR_YEAR <= v <= latest:
        raise ValueError(f"Năm sản xuất phải từ {settings.MIN_CAR_YEAR} đến {latest}")
    return v


def _check_price(v: Optional[int]) -> Optional[int]:
    if v is not None and v < settings.MIN_PRICE_PER_DAY:
        raise ValueError(f"Giá tối thiểu {settings.MIN_PRICE_PER_DAY:,}đ")
    return v


class CarFields(ApiModel):
    @field_validator("brand", "model", check_fields=False)
    @classmethod
    def not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Không được để trống")
        return v.strip() if v is not None else v

    @field_validator("year", check_fields=False)
    @classmethod
    def year_in_range(cls, v):
        return _check_year(v)

    @field_validator("price_per_day", check_fields=False)
    @classmethod
    def price_above_minimum(cls, v):
        return _check_price(v)

    @field_validator("image", check_fields=False)
    @classmethod
    def image_is_url(cls, v):
        if v is None:
            return v
        try:
            _url_adapter.validate_python(v)
        except ValueError:
            raise ValueError("URL hình ảnh không hợp lệ")
        return v


class CarCreate(CarFields):
    brand: str
    model: str
    year: int
    type: CarType
    transmission: Transmission
    fuel: FuelType
    seats: int = Field(ge=2, le=16)
    price_per_day: int
    image: str
    description: Optional[str] = None
    status: CarStatus = CarStatus.available
    features: Optional[str] = None


class CarUpdate(CarFields):
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    type: Optional[CarType] = None
    transmission: Optional[Transmission] = None
    fuel: Optional[FuelType] = None
    seats: Optional[int] = Field(default=None, ge=2, le=16)
    price_per_day: Optional[int] = None
    image: Optional[str] = None
    description: Optional[str] = None
    status: Optional[CarStatus] = None
    features: Optional[str] = None

    @model_validator(mode="after")
    def required_fields_not_null(self):
        nullable = {"description", "features"}
        for name in self.model_fields_set - nullable:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} không được để trống")
        return self


class CarOut(ApiModel):
    id: str
    brand: str
    model: str
    year: int
    type: CarType
    transmission: Transmission
    fuel: FuelType
    seats: int
    price_per_day: int
    image: str
    description: Optional[str] = None
    status: CarStatus
    features: Optional[str] = None


class Quote(ApiModel):
    days: int
    price_per_day: int
    total_price: int


# ---------- Bookings ----------

PHONE_PATTERN = r"^0[35789][0-9]{8}$"


class BookingCreate(ApiModel):
    car_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=2)
    customer_phone: str = Field(pattern=PHONE_PATTERN)
    customer_id: str = Field(min_length=9, max_length=12)
    start_date: date
    end_date: date
    total_price: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("Ngày trả xe phải sau ngày nhận xe")
        return self


class BookingUpdate(ApiModel):
    customer_name: Optional[str] = Field(default=None, min_length=2)
    customer_phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    customer_id: Optional[str] = Field(default=None, min_length=9, max_length=12)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_price: Optional[int] = Field(default=None, ge=0)
    status: Optional[BookingStatus] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def required_fields_not_null(self):
        for name in self.model_fields_set - {"notes"}:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} không được để trống")
        return self


class BookingOut(ApiModel):
    id: str
    car_id: str
    customer_name: str
    customer_phone: str
    customer_id: str
    start_date: date
    end_date: date
    total_price: int
    status: BookingStatus
    notes: Optional[str] = None
    created_at: datetime


class BookingWithCar(BookingOut):
    car: Optional[CarOut] = None


# ---------- Auth ----------

class Credentials(BaseModel):
    username: str = Field(min_length=3)
    password: str = Field(min_length=6)


class UserOut(ApiModel):
    id: str
    username: str
    role: UserRole


class Message(BaseModel):
    message: str


# ---------- Admin ----------

class Statistics(ApiModel):
    total_cars: int
    cars_by_status: Dict[CarStatus, int]
    total_bookings: int
    bookings_by_status: Dict[BookingStatus, int]
    revenue: int
    recent_bookings: List[BookingWithCar]
