import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import main
from auth import AuthGate
from database import RecordStore, get_session
from models import AuthSession, Booking, Car, User, UserRole
from rental_operations import BookingEngine, CarInventory

CAMRY = {
    "brand": "Toyota",
    "model": "Camry",
    "year": 2023,
    "type": "sedan",
    "transmission": "automatic",
    "fuel": "gasoline",
    "seats": 5,
    "pricePerDay": 800000,
    "image": "https://example.com/cars/camry.jpg",
    "description": "Sedan hạng D",
    "features": "GPS, Bluetooth",
}

CUSTOMER = {
    "customerName": "Trần Thị Bình",
    "customerPhone": "0912345678",
    "customerId": "023456789012",
}


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def car_store(session):
    return RecordStore(session, Car, "car")


@pytest.fixture
def inventory(car_store):
    return CarInventory(car_store)


@pytest.fixture
def booking_engine(session, car_store):
    return BookingEngine(RecordStore(session, Booking, "booking"), car_store, strict_transitions=False)


@pytest.fixture
def gate(session):
    return AuthGate(RecordStore(session, User, "user"), RecordStore(session, AuthSession, "session"))


@pytest.fixture
def client(engine):
    def session_override():
        with Session(engine) as session:
            yield session

    main.app.dependency_overrides[get_session] = session_override
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, gate):
    gate.register("boss", "secret123", role=UserRole.admin)
    response = client.post("/api/auth/login", json={"username": "boss", "password": "secret123"})
    assert response.status_code == 200
    return client


@pytest.fixture
def camry(admin_client):
    response = admin_client.post("/api/cars", json=CAMRY)
    assert response.status_code == 201
    return response.json()
