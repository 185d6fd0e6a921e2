# database.py
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import uuid4

from sqlmodel import SQLModel, create_engine, Session, select

import settings
from models import Booking, BookingStatus, Car, CarStatus

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO, connect_args=connect_args)


def create_db_and_tables(bind=None):
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session


ModelT = TypeVar("ModelT", bound=SQLModel)


class RecordStore(Generic[ModelT]):
    """Keyed collection over a single table.

    Ids are opaque strings of the form ``<prefix>-<uuid4>``. The store does
    not enforce references between collections: deleting a car leaves its
    bookings untouched.
    """

    def __init__(self, session: Session, model: Type[ModelT], prefix: str):
        self.session = session
        self.model = model
        self.prefix = prefix

    def new_id(self) -> str:
        return f"{self.prefix}-{uuid4()}"

    def create(self, entity: ModelT, commit: bool = True) -> ModelT:
        if not entity.id:
            entity.id = self.new_id()
        self.session.add(entity)
        if commit:
            self.commit()
            self.session.refresh(entity)
        return entity

    def get(self, record_id: str) -> Optional[ModelT]:
        return self.session.get(self.model, record_id)

    def exists(self, record_id: str) -> bool:
        return self.get(record_id) is not None

    def first(self, *where) -> Optional[ModelT]:
        return self.session.exec(select(self.model).where(*where)).first()

    def list(self, *where, order_by=None) -> List[ModelT]:
        statement = select(self.model)
        if where:
            statement = statement.where(*where)
        if order_by is not None:
            statement = statement.order_by(order_by)
        return list(self.session.exec(statement).all())

    def update(self, record_id: str, fields: Dict[str, Any], commit: bool = True) -> Optional[ModelT]:
        entity = self.get(record_id)
        if entity is None:
            return None
        # shallow merge, unspecified fields keep their values
        for key, value in fields.items():
            setattr(entity, key, value)
        self.session.add(entity)
        if commit:
            self.commit()
            self.session.refresh(entity)
        return entity

    def delete(self, record_id: str) -> bool:
        entity = self.get(record_id)
        if entity is None:
            return False
        self.session.delete(entity)
        self.commit()
        return True

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()


SAMPLE_CARS = [
    dict(id="car-1", brand="Toyota", model="Camry", year=2023, type="sedan", transmission="automatic",
         fuel="gasoline", seats=5, price_per_day=800000,
         image="/attached_assets/stock_images/luxury_sedan_car_pro_15cee928.jpg",
         description="Toyota Camry 2023 là dòng xe sedan hạng D sang trọng với thiết kế thể thao, nội thất hiện đại.",
         status="available", features="Camera lùi, GPS, Bluetooth, Ghế da, Điều hòa tự động, Cửa sổ trời"),
    dict(id="car-2", brand="Honda", model="CR-V", year=2023, type="suv", transmission="automatic",
         fuel="gasoline", seats=7, price_per_day=1200000,
         image="/attached_assets/stock_images/suv_car_professional_7953a907.jpg",
         description="Honda CR-V 7 chỗ rộng rãi, phù hợp cho gia đình và các chuyến du lịch dài ngày.",
         status="available", features="Honda Sensing, Camera 360, Cảm biến đỗ xe, Ghế chỉnh điện, Apple CarPlay"),
    dict(id="car-3", brand="Mercedes-Benz", model="C300", year=2022, type="sedan", transmission="automatic",
         fuel="gasoline", seats=5, price_per_day=2500000,
         image="/attached_assets/stock_images/luxury_sedan_car_pro_66e91957.jpg",
         description="Mercedes-Benz C300 AMG Line, động cơ 2.0L turbo 258 mã lực.",
         status="available", features="MBUX, Burmester Sound, Cửa sổ trời panoramic, Ghế massage, Ambient Light"),
    dict(id="car-4", brand="Ford", model="Mustang", year=2023, type="sports", transmission="automatic",
         fuel="gasoline", seats=4, price_per_day=3500000,
         image="/attached_assets/stock_images/sports_car_rental_pr_3ef8e70b.jpg",
         description="Ford Mustang với động cơ V8 5.0L 450 mã lực.",
         status="available", features="V8 Engine, Launch Control, Track Mode, Recaro Seats, Bang & Olufsen"),
    dict(id="car-5", brand="Mazda", model="CX-5", year=2023, type="suv", transmission="automatic",
         fuel="gasoline", seats=5, price_per_day=900000,
         image="/attached_assets/stock_images/suv_car_professional_05b1cc64.jpg",
         description="Mazda CX-5 với thiết kế KODO, vận hành êm ái.",
         status="rented", features="i-Activsense, Bose Sound, HUD, Ghế chỉnh điện, Cốp điện"),
    dict(id="car-6", brand="BMW", model="M4", year=2023, type="sports", transmission="automatic",
         fuel="gasoline", seats=4, price_per_day=4000000,
         image="/attached_assets/stock_images/sports_car_rental_pr_aa2de8a4.jpg",
         description="BMW M4 Competition, động cơ twin-turbo 503 mã lực.",
         status="available", features="M xDrive, Carbon Roof, M Track Mode, Harman Kardon, Carbon Bucket Seats"),
    dict(id="car-7", brand="Hyundai", model="Accent", year=2023, type="sedan", transmission="automatic",
         fuel="gasoline", seats=5, price_per_day=500000,
         image="/attached_assets/stock_images/luxury_sedan_car_pro_ab45093e.jpg",
         description="Hyundai Accent, tiết kiệm và tin cậy cho di chuyển hàng ngày.",
         status="available", features="Camera lùi, Bluetooth, Điều hòa, Cảm biến lùi, Android Auto"),
]

SAMPLE_BOOKINGS = [
    dict(id="booking-1", car_id="car-5", customer_name="Nguyễn Văn An", customer_phone="0909123456",
         customer_id="012345678901", start_date=date(2024, 11, 28), end_date=date(2024, 12, 2),
         total_price=3600000, status="renting", notes="Cần nhận xe vào buổi sáng",
         created_at=datetime(2024, 11, 27, 10, 0, tzinfo=timezone.utc)),
    dict(id="booking-2", car_id="car-1", customer_name="Trần Thị Bình", customer_phone="0912345678",
         customer_id="023456789012", start_date=date(2024, 12, 1), end_date=date(2024, 12, 3),
         total_price=1600000, status="confirmed", notes="",
         created_at=datetime(2024, 11, 29, 14, 30, tzinfo=timezone.utc)),
    dict(id="booking-3", car_id="car-3", customer_name="Lê Minh Cường", customer_phone="0987654321",
         customer_id="034567890123", start_date=date(2024, 12, 5), end_date=date(2024, 12, 10),
         total_price=12500000, status="pending", notes="Đám cưới, cần trang trí xe",
         created_at=datetime(2024, 11, 30, 9, 15, tzinfo=timezone.utc)),
]


def seed_sample_data(session: Session) -> bool:
    """Load the demo catalogue into an empty database. Returns whether anything was inserted."""
    cars = RecordStore(session, Car, "car")
    if cars.first() is not None:
        return False

    bookings = RecordStore(session, Booking, "booking")
    for row in SAMPLE_CARS:
        data = dict(row, status=CarStatus(row["status"]))
        cars.create(Car(**data), commit=False)
    for row in SAMPLE_BOOKINGS:
        data = dict(row, status=BookingStatus(row["status"]))
        bookings.create(Booking(**data), commit=False)
    session.commit()
    logger.info("Seeded %d cars and %d bookings", len(SAMPLE_CARS), len(SAMPLE_BOOKINGS))
    return True
