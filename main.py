#main.py
import logging
from datetime import date
from typing import List, Optional

from fastapi import FastAPI, Depends, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import settings
from auth import AuthGate, get_auth_gate, require_admin, require_user, session_token
from database import RecordStore, create_db_and_tables, engine, get_session, seed_sample_data
from models import AuthSession, Booking, BookingStatus, Car, CarType, Transmission, User
from rental_operations import MESSAGES, BookingEngine, BookingView, CarFilters, CarInventory, NotFoundError, RentalError
from schemas import (BookingCreate, BookingOut, BookingUpdate, BookingWithCar, CarCreate, CarOut, CarUpdate,
                     Credentials, Message, Quote, Statistics, UserOut)

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Car Rental API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    create_db_and_tables()
    with Session(engine) as session:
        if settings.SEED_SAMPLE_DATA:
            seed_sample_data(session)
        gate = AuthGate(RecordStore(session, User, "user"), RecordStore(session, AuthSession, "session"))
        gate.ensure_admin(settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD)


# --- Error responses: every failure body is {"error": ...} ---

@app.exception_handler(RentalError)
def rental_error_handler(request: Request, exc: RentalError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": MESSAGES["invalid_data"], "details": details})


@app.exception_handler(StarletteHTTPException)
def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": MESSAGES["server_error"]})


# --- Dependencies ---

def get_inventory(session: Session = Depends(get_session)) -> CarInventory:
    return CarInventory(RecordStore(session, Car, "car"))


def get_booking_engine(session: Session = Depends(get_session)) -> BookingEngine:
    return BookingEngine(RecordStore(session, Booking, "booking"), RecordStore(session, Car, "car"))


def booking_with_car(view: BookingView) -> BookingWithCar:
    return BookingWithCar.model_validate(view.as_dict())


def set_session_cookie(response: Response, token: str):
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
        max_age=settings.SESSION_MAX_AGE,
    )


@app.get("/")
def read_root():
    return {"message": "Car Rental API is running"}


# 1. Cars

@app.get("/api/cars", response_model=List[CarOut])
def list_cars(
    search: Optional[str] = None,
    car_type: Optional[CarType] = Query(None, alias="type"),
    transmission: Optional[Transmission] = None,
    min_price: Optional[int] = Query(None, alias="minPrice"),
    max_price: Optional[int] = Query(None, alias="maxPrice"),
    seats: List[int] = Query([]),
    available_only: bool = Query(False, alias="availableOnly"),
    inventory: CarInventory = Depends(get_inventory),
):
    filters = CarFilters(
        search=search,
        type=car_type,
        transmission=transmission,
        min_price=min_price,
        max_price=max_price,
        seats=set(seats),
        available_only=available_only,
    )
    return [CarOut.model_validate(car) for car in inventory.list_cars(filters)]


@app.get("/api/cars/{car_id}", response_model=CarOut)
def get_car(car_id: str, inventory: CarInventory = Depends(get_inventory)):
    return CarOut.model_validate(inventory.get_car(car_id))


@app.get("/api/cars/{car_id}/quote", response_model=Quote)
def quote_car(
    car_id: str,
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    inventory: CarInventory = Depends(get_inventory),
    bookings: BookingEngine = Depends(get_booking_engine),
):
    car = inventory.get_car(car_id)
    total = bookings.quote(car, start_date, end_date)
    return Quote(days=(end_date - start_date).days, price_per_day=car.price_per_day, total_price=total)


@app.post("/api/cars", response_model=CarOut, status_code=201)
def create_car(
    payload: CarCreate,
    inventory: CarInventory = Depends(get_inventory),
    admin: User = Depends(require_admin),
):
    return CarOut.model_validate(inventory.create_car(payload.model_dump()))


@app.patch("/api/cars/{car_id}", response_model=CarOut)
def update_car(
    car_id: str,
    payload: CarUpdate,
    inventory: CarInventory = Depends(get_inventory),
    admin: User = Depends(require_admin),
):
    return CarOut.model_validate(inventory.update_car(car_id, payload.model_dump(exclude_unset=True)))


@app.delete("/api/cars/{car_id}", status_code=204)
def delete_car(
    car_id: str,
    inventory: CarInventory = Depends(get_inventory),
    admin: User = Depends(require_admin),
):
    if not inventory.delete_car(car_id):
        raise NotFoundError(MESSAGES["car_not_found"])
    return Response(status_code=204)


# 2. Bookings

@app.get("/api/bookings", response_model=List[BookingWithCar])
def list_bookings(
    status: Optional[BookingStatus] = None,
    bookings: BookingEngine = Depends(get_booking_engine),
    admin: User = Depends(require_admin),
):
    return [booking_with_car(view) for view in bookings.list_bookings(status)]


@app.get("/api/bookings/{booking_id}", response_model=BookingWithCar)
def get_booking(
    booking_id: str,
    bookings: BookingEngine = Depends(get_booking_engine),
    admin: User = Depends(require_admin),
):
    return booking_with_car(bookings.get_booking(booking_id))


@app.post("/api/bookings", response_model=BookingOut, status_code=201)
def create_booking(payload: BookingCreate, bookings: BookingEngine = Depends(get_booking_engine)):
    return BookingOut.model_validate(bookings.create_booking(payload.model_dump()))


@app.patch("/api/bookings/{booking_id}", response_model=BookingOut)
def update_booking(
    booking_id: str,
    payload: BookingUpdate,
    bookings: BookingEngine = Depends(get_booking_engine),
    admin: User = Depends(require_admin),
):
    booking = bookings.update_booking(booking_id, payload.model_dump(exclude_unset=True))
    return BookingOut.model_validate(booking)


@app.delete("/api/bookings/{booking_id}", status_code=204)
def delete_booking(
    booking_id: str,
    bookings: BookingEngine = Depends(get_booking_engine),
    admin: User = Depends(require_admin),
):
    if not bookings.delete_booking(booking_id):
        raise NotFoundError(MESSAGES["booking_not_found"])
    return Response(status_code=204)


# 3. Auth

@app.post("/api/auth/signup", response_model=UserOut, status_code=201)
def signup(payload: Credentials, response: Response, gate: AuthGate = Depends(get_auth_gate)):
    user, token = gate.signup(payload.username, payload.password)
    set_session_cookie(response, token)
    return UserOut.model_validate(user)


@app.post("/api/auth/login", response_model=UserOut)
def login(payload: Credentials, response: Response, gate: AuthGate = Depends(get_auth_gate)):
    user, token = gate.login(payload.username, payload.password)
    set_session_cookie(response, token)
    return UserOut.model_validate(user)


@app.post("/api/auth/logout", response_model=Message)
def logout(request: Request, response: Response, gate: AuthGate = Depends(get_auth_gate)):
    gate.logout(session_token(request))
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return Message(message=MESSAGES["logged_out"])


@app.get("/api/auth/me", response_model=UserOut)
def me(user: User = Depends(require_user)):
    return UserOut.model_validate(user)


# 4. Admin dashboard

@app.get("/api/admin/stats", response_model=Statistics)
def admin_statistics(
    bookings: BookingEngine = Depends(get_booking_engine),
    admin: User = Depends(require_admin),
):
    return Statistics.model_validate(bookings.statistics())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
