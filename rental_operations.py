# rental_operations.py
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Set

from sqlmodel import col

import settings
from database import RecordStore
from models import Booking, BookingStatus, Car, CarStatus, CarType, Transmission, utcnow

logger = logging.getLogger(__name__)


MESSAGES = {
    "invalid_data": "Dữ liệu không hợp lệ",
    "car_not_found": "Không tìm thấy xe",
    "car_missing": "Xe không tồn tại",
    "car_unavailable": "Xe không khả dụng",
    "booking_not_found": "Không tìm thấy đơn thuê",
    "invalid_dates": "Ngày trả xe phải sau ngày nhận xe",
    "invalid_transition": "Không thể chuyển trạng thái đơn thuê từ '{old}' sang '{new}'",
    "username_taken": "Tên đăng nhập đã tồn tại",
    "bad_credentials": "Tên đăng nhập hoặc mật khẩu không đúng",
    "not_logged_in": "Chưa đăng nhập",
    "forbidden": "Không có quyền thực hiện thao tác này",
    "logged_out": "Đăng xuất thành công",
    "server_error": "Lỗi máy chủ nội bộ",
}


# ---------- Errors ----------

class RentalError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RentalError):
    status_code = 400


class NotFoundError(RentalError):
    status_code = 404


class PreconditionError(RentalError):
    status_code = 400


class AuthenticationError(RentalError):
    status_code = 401


class AuthorizationError(RentalError):
    status_code = 403


# ---------- Inventory ----------

@dataclass
class CarFilters:
    search: Optional[str] = None
    type: Optional[CarType] = None
    transmission: Optional[Transmission] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    seats: Set[int] = field(default_factory=set)
    available_only: bool = False

    def matches(self, car: Car) -> bool:
        if self.search:
            needle = self.search.lower()
            if needle not in car.brand.lower() and needle not in car.model.lower():
                return False
        if self.type and car.type != self.type:
            return False
        if self.transmission and car.transmission != self.transmission:
            return False
        if self.min_price is not None and car.price_per_day < self.min_price:
            return False
        if self.max_price is not None and car.price_per_day > self.max_price:
            return False
        if self.seats and car.seats not in self.seats:
            return False
        if self.available_only and car.status != CarStatus.available:
            return False
        return True


class CarInventory:
    """Owns the car records and their availability status."""

    def __init__(self, cars: RecordStore[Car]):
        self.cars = cars

    def list_cars(self, filters: Optional[CarFilters] = None) -> List[Car]:
        cars = self.cars.list()
        if filters is None:
            return cars
        return [car for car in cars if filters.matches(car)]

    def get_car(self, car_id: str) -> Car:
        car = self.cars.get(car_id)
        if car is None:
            raise NotFoundError(MESSAGES["car_not_found"])
        return car

    def create_car(self, fields: Dict[str, Any]) -> Car:
        data = dict(fields)
        data.setdefault("status", CarStatus.available)
        data.pop("id", None)
        car = self.cars.create(Car(**data))
        logger.info("Created car %s (%s %s)", car.id, car.brand, car.model)
        return car

    def update_car(self, car_id: str, fields: Dict[str, Any]) -> Car:
        fields = {k: v for k, v in fields.items() if k != "id"}
        car = self.cars.update(car_id, fields)
        if car is None:
            raise NotFoundError(MESSAGES["car_not_found"])
        logger.info("Updated car %s: %s", car_id, ", ".join(sorted(fields)) or "no changes")
        return car

    def delete_car(self, car_id: str) -> bool:
        deleted = self.cars.delete(car_id)
        if deleted:
            logger.info("Deleted car %s", car_id)
        return deleted


# ---------- Bookings ----------

# Car status written when a booking enters the given status
CAR_STATUS_CASCADE = {
    BookingStatus.renting: CarStatus.rented,
    BookingStatus.returned: CarStatus.available,
    BookingStatus.cancelled: CarStatus.available,
}

# Used only when STRICT_BOOKING_TRANSITIONS is on
ALLOWED_TRANSITIONS = {
    BookingStatus.pending: {BookingStatus.confirmed, BookingStatus.renting, BookingStatus.cancelled},
    BookingStatus.confirmed: {BookingStatus.renting, BookingStatus.cancelled},
    BookingStatus.renting: {BookingStatus.returned, BookingStatus.cancelled},
    BookingStatus.returned: set(),
    BookingStatus.cancelled: set(),
}


@dataclass
class BookingView:
    """A booking joined with the current state of its car (None once the car is deleted)."""
    booking: Booking
    car: Optional[Car]

    def as_dict(self) -> Dict[str, Any]:
        data = _fields(self.booking)
        data["car"] = _fields(self.car) if self.car is not None else None
        return data


def _fields(row) -> Dict[str, Any]:
    # getattr reloads expired attributes, model_dump does not
    return {name: getattr(row, name) for name in type(row).model_fields}


def rental_days(start: date, end: date) -> int:
    return (end - start).days


def as_booking_status(value) -> BookingStatus:
    try:
        return BookingStatus(value)
    except ValueError:
        raise ValidationError(MESSAGES["invalid_data"])


class BookingEngine:
    """Creates bookings and drives their status, cascading onto the booked car."""

    def __init__(self, bookings: RecordStore[Booking], cars: RecordStore[Car],
                 strict_transitions: Optional[bool] = None):
        self.bookings = bookings
        self.cars = cars
        if strict_transitions is None:
            strict_transitions = settings.STRICT_BOOKING_TRANSITIONS
        self.strict_transitions = strict_transitions

    def quote(self, car: Car, start: date, end: date) -> int:
        days = rental_days(start, end)
        if days <= 0:
            raise ValidationError(MESSAGES["invalid_dates"])
        return days * car.price_per_day

    def create_booking(self, fields: Dict[str, Any]) -> Booking:
        data = {k: v for k, v in fields.items() if k not in ("id", "status", "created_at")}
        car = self.cars.get(data["car_id"])
        if car is None:
            logger.warning("Booking rejected: car %s does not exist", data["car_id"])
            raise PreconditionError(MESSAGES["car_missing"])
        if car.status != CarStatus.available:
            logger.warning("Booking rejected: car %s is %s", car.id, car.status.value)
            raise PreconditionError(MESSAGES["car_unavailable"])

        quoted = self.quote(car, data["start_date"], data["end_date"])
        if data.get("total_price") is None:
            data["total_price"] = quoted

        booking = self.bookings.create(Booking(**data, status=BookingStatus.pending, created_at=utcnow()))
        logger.info("Created booking %s for car %s (%s -> %s, total %d)",
                    booking.id, car.id, booking.start_date, booking.end_date, booking.total_price)
        return booking

    def _check_transition(self, old: BookingStatus, new: BookingStatus):
        if not self.strict_transitions or old == new:
            return
        if new not in ALLOWED_TRANSITIONS[old]:
            raise ValidationError(MESSAGES["invalid_transition"].format(old=old.value, new=new.value))

    def _stage_status(self, booking: Booking, new_status: BookingStatus):
        self._check_transition(booking.status, new_status)
        old_status = booking.status
        booking.status = new_status
        self.bookings.session.add(booking)

        car_status = CAR_STATUS_CASCADE.get(new_status)
        car = self.cars.get(booking.car_id) if car_status else None
        if car is not None:
            self.cars.update(car.id, {"status": car_status}, commit=False)
        logger.info("Booking %s: %s -> %s%s", booking.id, old_status.value, new_status.value,
                    f" (car {car.id} -> {car_status.value})" if car is not None else "")

    def set_status(self, booking_id: str, new_status: BookingStatus) -> Booking:
        booking = self._get(booking_id)
        self._stage_status(booking, as_booking_status(new_status))
        self._commit(booking)
        return booking

    def update_booking(self, booking_id: str, fields: Dict[str, Any]) -> Booking:
        booking = self._get(booking_id)
        data = {k: v for k, v in fields.items() if k not in ("id", "car_id", "created_at")}
        new_status = data.pop("status", None)
        if new_status is not None:
            new_status = as_booking_status(new_status)

        start = data.get("start_date", booking.start_date)
        end = data.get("end_date", booking.end_date)
        if rental_days(start, end) <= 0:
            raise ValidationError(MESSAGES["invalid_dates"])
        if new_status is not None:
            self._check_transition(booking.status, new_status)
        if ("start_date" in data or "end_date" in data) and data.get("total_price") is None:
            data["total_price"] = self._requote(booking, start, end)

        self.bookings.update(booking_id, data, commit=False)
        if new_status is not None:
            self._stage_status(booking, new_status)
        self._commit(booking)
        return booking

    def _requote(self, booking: Booking, start: date, end: date) -> int:
        car = self.cars.get(booking.car_id)
        if car is not None:
            return self.quote(car, start, end)
        # car deleted: keep the daily rate the booking was priced at
        daily = booking.total_price // rental_days(booking.start_date, booking.end_date)
        return daily * rental_days(start, end)

    def _commit(self, booking: Booking):
        # booking and car writes land together or not at all
        try:
            self.bookings.commit()
        except Exception:
            self.bookings.rollback()
            raise
        self.bookings.session.refresh(booking)

    def delete_booking(self, booking_id: str) -> bool:
        deleted = self.bookings.delete(booking_id)
        if deleted:
            logger.info("Deleted booking %s", booking_id)
        return deleted

    def _get(self, booking_id: str) -> Booking:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(MESSAGES["booking_not_found"])
        return booking

    def _join(self, booking: Booking) -> BookingView:
        return BookingView(booking=booking, car=self.cars.get(booking.car_id))

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[BookingView]:
        where = [Booking.status == status] if status is not None else []
        rows = self.bookings.list(*where, order_by=col(Booking.created_at).desc())
        return [self._join(b) for b in rows]

    def get_booking(self, booking_id: str) -> BookingView:
        return self._join(self._get(booking_id))

    def statistics(self, recent: int = 5) -> Dict[str, Any]:
        cars = self.cars.list()
        views = self.list_bookings()
        cars_by_status = {s: 0 for s in CarStatus}
        for car in cars:
            cars_by_status[car.status] += 1
        bookings_by_status = {s: 0 for s in BookingStatus}
        for view in views:
            bookings_by_status[view.booking.status] += 1
        revenue = sum(v.booking.total_price for v in views if v.booking.status == BookingStatus.returned)
        return {
            "total_cars": len(cars),
            "cars_by_status": cars_by_status,
            "total_bookings": len(views),
            "bookings_by_status": bookings_by_status,
            "revenue": revenue,
            "recent_bookings": [v.as_dict() for v in views[:recent]],
        }
