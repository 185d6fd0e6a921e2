# models.py

from sqlmodel import SQLModel, Field
from typing import Optional
from enum import Enum
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Car categories
class CarType(str, Enum):
    sedan = "sedan"
    suv = "suv"
    sports = "sports"
    hatchback = "hatchback"
    pickup = "pickup"


class Transmission(str, Enum):
    automatic = "automatic"
    manual = "manual"


class FuelType(str, Enum):
    gasoline = "gasoline"
    diesel = "diesel"
    electric = "electric"
    hybrid = "hybrid"


# Whether a car may be newly booked
class CarStatus(str, Enum):
    available = "available"
    rented = "rented"
    maintenance = "maintenance"


# Booking lifecycle: pending -> confirmed -> renting -> returned, cancelled from any non-terminal state
class BookingStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    renting = "renting"
    returned = "returned"
    cancelled = "cancelled"


class UserRole(str, Enum):
    admin = "admin"
    customer = "customer"


# Cars table
class Car(SQLModel, table=True):
    __tablename__ = "cars"

    id: Optional[str] = Field(default=None, primary_key=True)
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
    status: CarStatus = Field(default=CarStatus.available)
    features: Optional[str] = None  # comma separated


# Bookings table
class Booking(SQLModel, table=True):
    __tablename__ = "bookings"

    id: Optional[str] = Field(default=None, primary_key=True)
    # no foreign key: deleting a car leaves its bookings in place
    car_id: str = Field(index=True)
    customer_name: str
    customer_phone: str
    customer_id: str  # national ID
    start_date: date
    end_date: date
    total_price: int
    status: BookingStatus = Field(default=BookingStatus.pending)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


# Users table
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[str] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    hashed_password: str
    role: UserRole = Field(default=UserRole.customer)


# Login sessions, keyed by the cookie token
class AuthSession(SQLModel, table=True):
    __tablename__ = "sessions"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow)
