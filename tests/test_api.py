from datetime import date

import pytest
from sqlmodel import select

from database import seed_sample_data
from models import Booking, BookingStatus, Car, CarStatus
from tests.conftest import CAMRY, CUSTOMER


def booking_payload(car_id, **overrides):
    payload = dict(CUSTOMER, carId=car_id, startDate="2024-12-01", endDate="2024-12-03", totalPrice=1600000)
    payload.update(overrides)
    return payload


# ---------- Cars ----------

def test_root(client):
    assert client.get("/").status_code == 200


def test_create_and_get_car(camry, client):
    assert camry["id"].startswith("car-")
    assert camry["status"] == "available"
    for key, value in CAMRY.items():
        assert camry[key] == value

    response = client.get(f"/api/cars/{camry['id']}")
    assert response.status_code == 200
    assert response.json() == camry


def test_list_cars_is_public(camry, client):
    client.post("/api/auth/logout")
    response = client.get("/api/cars")
    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [camry["id"]]


def test_list_cars_filters(admin_client, camry):
    admin_client.post("/api/cars", json=dict(CAMRY, brand="Ford", model="Ranger", type="pickup",
                                             transmission="manual", seats=4, status="maintenance"))
    assert len(admin_client.get("/api/cars").json()) == 2
    assert [c["brand"] for c in admin_client.get("/api/cars?type=pickup").json()] == ["Ford"]
    assert [c["brand"] for c in admin_client.get("/api/cars?availableOnly=true").json()] == ["Toyota"]
    assert [c["brand"] for c in admin_client.get("/api/cars?seats=4&seats=7").json()] == ["Ford"]
    assert [c["brand"] for c in admin_client.get("/api/cars?search=cam").json()] == ["Toyota"]


def test_get_missing_car_is_404(client):
    response = client.get("/api/cars/car-nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Không tìm thấy xe"}


@pytest.mark.parametrize("override", [
    {"brand": "  "},
    {"year": 1989},
    {"year": date.today().year + 2},
    {"seats": 1},
    {"seats": 17},
    {"pricePerDay": 99999},
    {"image": "not a url"},
    {"type": "limousine"},
    {"status": "stolen"},
])
def test_create_car_validation(admin_client, override):
    response = admin_client.post("/api/cars", json=dict(CAMRY, **override))
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Dữ liệu không hợp lệ"
    assert body["details"]


def test_update_car(admin_client, camry):
    response = admin_client.patch(f"/api/cars/{camry['id']}", json={"status": "maintenance", "pricePerDay": 900000})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "maintenance"
    assert body["pricePerDay"] == 900000
    assert body["brand"] == "Toyota"


def test_update_car_validates_present_fields(admin_client, camry):
    assert admin_client.patch(f"/api/cars/{camry['id']}", json={"seats": 20}).status_code == 400
    assert admin_client.patch(f"/api/cars/{camry['id']}", json={"brand": None}).status_code == 400
    assert admin_client.patch("/api/cars/car-nope", json={"seats": 4}).status_code == 404


def test_delete_car_twice(admin_client, camry):
    response = admin_client.delete(f"/api/cars/{camry['id']}")
    assert response.status_code == 204
    assert response.content == b""
    assert admin_client.delete(f"/api/cars/{camry['id']}").status_code == 404


def test_quote(client, camry):
    response = client.get(f"/api/cars/{camry['id']}/quote?startDate=2024-12-01&endDate=2024-12-03")
    assert response.status_code == 200
    assert response.json() == {"days": 2, "pricePerDay": 800000, "totalPrice": 1600000}
    bad = client.get(f"/api/cars/{camry['id']}/quote?startDate=2024-12-03&endDate=2024-12-03")
    assert bad.status_code == 400


# ---------- Authorization ----------

ADMIN_ROUTES = [
    ("post", "/api/cars"),
    ("patch", "/api/cars/car-1"),
    ("delete", "/api/cars/car-1"),
    ("get", "/api/bookings"),
    ("get", "/api/bookings/booking-2"),
    ("patch", "/api/bookings/booking-2"),
    ("delete", "/api/bookings/booking-2"),
    ("get", "/api/admin/stats"),
]


def call(client, method, path):
    if method == "post":
        return client.post(path, json=CAMRY)
    if method == "patch":
        body = {"status": "renting"} if "bookings" in path else {"status": "maintenance"}
        return client.patch(path, json=body)
    return getattr(client, method)(path)


@pytest.mark.parametrize("method,path", ADMIN_ROUTES)
def test_admin_routes_need_a_session(client, method, path):
    response = call(client, method, path)
    assert response.status_code == 401


@pytest.mark.parametrize("method,path", ADMIN_ROUTES)
def test_customers_are_forbidden_from_admin_routes(client, session, method, path):
    seed_sample_data(session)
    client.post("/api/auth/signup", json={"username": "khach01", "password": "matkhau1"})

    response = call(client, method, path)
    assert response.status_code == 403
    assert response.json() == {"error": "Không có quyền thực hiện thao tác này"}

    session.expire_all()
    assert len(session.exec(select(Car)).all()) == 7
    assert session.get(Car, "car-1").status == CarStatus.available
    assert session.get(Booking, "booking-2").status == BookingStatus.confirmed


# ---------- Bookings ----------

def test_booking_flow(admin_client, camry):
    response = admin_client.post("/api/bookings", json=booking_payload(camry["id"]))
    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "pending"
    assert booking["totalPrice"] == 1600000
    assert booking["createdAt"]

    response = admin_client.patch(f"/api/bookings/{booking['id']}", json={"status": "renting"})
    assert response.status_code == 200
    assert response.json()["status"] == "renting"
    assert admin_client.get(f"/api/cars/{camry['id']}").json()["status"] == "rented"

    response = admin_client.patch(f"/api/bookings/{booking['id']}", json={"status": "returned"})
    assert response.status_code == 200
    assert admin_client.get(f"/api/cars/{camry['id']}").json()["status"] == "available"

    joined = admin_client.get(f"/api/bookings/{booking['id']}").json()
    assert joined["car"]["id"] == camry["id"]
    assert joined["createdAt"] == booking["createdAt"]


def test_booking_creation_needs_no_login(admin_client, camry):
    admin_client.post("/api/auth/logout")
    response = admin_client.post("/api/bookings", json=booking_payload(camry["id"], totalPrice=None))
    assert response.status_code == 201
    assert response.json()["totalPrice"] == 1600000


def test_booking_rented_car_is_rejected(admin_client, camry):
    admin_client.patch(f"/api/cars/{camry['id']}", json={"status": "rented"})
    response = admin_client.post("/api/bookings", json=booking_payload(camry["id"]))
    assert response.status_code == 400
    assert response.json() == {"error": "Xe không khả dụng"}
    assert admin_client.get("/api/bookings").json() == []


def test_booking_missing_car_is_rejected(client):
    response = client.post("/api/bookings", json=booking_payload("car-ghost"))
    assert response.status_code == 400
    assert response.json() == {"error": "Xe không tồn tại"}


@pytest.mark.parametrize("override", [
    {"endDate": "2024-12-01"},
    {"endDate": "2024-11-30"},
    {"customerPhone": "12345"},
    {"customerName": "A"},
    {"customerId": "123"},
    {"totalPrice": -1},
])
def test_booking_schema_validation(client, camry, override):
    response = client.post("/api/bookings", json=booking_payload(camry["id"], **override))
    assert response.status_code == 400
    assert response.json()["error"] == "Dữ liệu không hợp lệ"


def test_bookings_newest_first_with_dangling_car(admin_client, camry):
    first = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()
    second = admin_client.post("/api/bookings", json=booking_payload(camry["id"], customerName="Lê Minh")).json()
    admin_client.delete(f"/api/cars/{camry['id']}")

    listed = admin_client.get("/api/bookings").json()
    assert [b["id"] for b in listed] == [second["id"], first["id"]]
    assert all(b["car"] is None for b in listed)


def test_bookings_status_filter(admin_client, camry):
    booking = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()
    admin_client.patch(f"/api/bookings/{booking['id']}", json={"status": "confirmed"})
    assert len(admin_client.get("/api/bookings?status=confirmed").json()) == 1
    assert admin_client.get("/api/bookings?status=pending").json() == []


def test_patch_booking_errors(admin_client, camry):
    booking = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()
    assert admin_client.patch(f"/api/bookings/{booking['id']}", json={"status": "lost"}).status_code == 400
    assert admin_client.patch("/api/bookings/booking-nope", json={"status": "confirmed"}).status_code == 404


def test_delete_booking(admin_client, camry):
    booking = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()
    assert admin_client.delete(f"/api/bookings/{booking['id']}").status_code == 204
    assert admin_client.get(f"/api/bookings/{booking['id']}").status_code == 404
    assert admin_client.delete(f"/api/bookings/{booking['id']}").status_code == 404


def test_admin_stats(admin_client, camry):
    booking = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()
    admin_client.patch(f"/api/bookings/{booking['id']}", json={"status": "returned"})

    stats = admin_client.get("/api/admin/stats").json()
    assert stats["totalCars"] == 1
    assert stats["carsByStatus"]["available"] == 1
    assert stats["bookingsByStatus"]["returned"] == 1
    assert stats["revenue"] == 1600000
    assert stats["recentBookings"][0]["id"] == booking["id"]


def test_changing_dates_reprices_booking(admin_client, camry):
    booking = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()

    response = admin_client.patch(f"/api/bookings/{booking['id']}", json={"endDate": "2024-12-11"})
    assert response.status_code == 200
    body = response.json()
    assert (body["startDate"], body["endDate"], body["totalPrice"]) == ("2024-12-01", "2024-12-11", 8000000)

    response = admin_client.patch(f"/api/bookings/{booking['id']}",
                                  json={"startDate": "2024-12-05", "endDate": "2024-12-06", "totalPrice": 700000})
    assert response.json()["totalPrice"] == 700000


def test_anonymous_reads_do_not_expose_customers(admin_client, camry):
    booking = admin_client.post("/api/bookings", json=booking_payload(camry["id"])).json()
    admin_client.post("/api/auth/logout")

    for path in ("/api/bookings", f"/api/bookings/{booking['id']}"):
        response = admin_client.get(path)
        assert response.status_code == 401
        assert CUSTOMER["customerId"] not in response.text
        assert CUSTOMER["customerPhone"] not in response.text
