# Apartment API tests: browse filters and sorting, rating aggregates, owner-only edits, and the sample catalog.
from __future__ import annotations

from datetime import date, timedelta
from typing import Tuple

from fastapi.testclient import TestClient

from app import models
from app.seed import SEED_APARTMENTS, seed_apartments


def register(client: TestClient, email: str, name: str = "Test User") -> Tuple[str, dict]:
    r = client.post("/api/users/register", json={"name": name, "email": email, "password": "changeme123"})
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    return data["token"], data["user"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def create_apartment(client: TestClient, token: str, **fields) -> dict:
    payload = {
        "title": "Flat",
        "price": 10000,
        "location": "Cairo",
        "region": "Heliopolis",
        "bedrooms": 2,
        "bathrooms": 1,
    }
    payload.update(fields)
    r = client.post("/api/apartments", headers=auth_headers(token), json=payload)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def review(client: TestClient, token: str, apartment_id: int, rating: int) -> None:
    r = client.post(
        "/api/reviews",
        headers=auth_headers(token),
        json={"apartment_id": apartment_id, "rating": rating, "comment": "ok"},
    )
    assert r.status_code == 201, r.text


def titles(r) -> list:
    assert r.status_code == 200, r.text
    return [a["title"] for a in r.json()["data"]]


def test_create_and_get_apartment(client: TestClient):
    token, user = register(client, "host@example.com")
    apt = create_apartment(client, token, title="  Nile View  ", area=90, lat=30.0, lng=31.2)
    assert apt["title"] == "Nile View"
    assert apt["owner_id"] == user["id"]
    assert apt["available"] is True
    assert apt["rating"] == 0
    assert apt["review_count"] == 0

    r = client.get(f"/api/apartments/{apt['id']}")
    assert r.status_code == 200
    detail = r.json()["data"]
    assert detail["area"] == 90
    assert detail["reviews"] == []
    assert detail["favorite"] is None


def test_create_requires_auth_and_valid_price(client: TestClient):
    r = client.post("/api/apartments", json={"title": "x", "price": 1, "location": "a", "region": "b"})
    assert r.status_code == 401

    token, _ = register(client, "host@example.com")
    r = client.post(
        "/api/apartments",
        headers=auth_headers(token),
        json={"title": "x", "price": 0, "location": "a", "region": "b"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"


def test_unknown_apartment_is_404(client: TestClient):
    r = client.get("/api/apartments/999")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Apartment not found", "error": "NOT_FOUND"}


def test_filters(client: TestClient):
    token, _ = register(client, "host@example.com")
    create_apartment(client, token, title="A", location="Cairo", region="Heliopolis", price=12000, bedrooms=3)
    create_apartment(client, token, title="B", location="Alexandria", region="Smouha", price=13000, bedrooms=4, bathrooms=3)
    create_apartment(client, token, title="C", location="Cairo", region="Nasr City", price=8000, bedrooms=1, available=False)

    assert sorted(titles(client.get("/api/apartments", params={"city": "cairo"}))) == ["A", "C"]
    assert titles(client.get("/api/apartments", params={"region": "helio"})) == ["A"]
    assert sorted(titles(client.get("/api/apartments", params={"minPrice": 10000}))) == ["A", "B"]
    assert titles(client.get("/api/apartments", params={"maxPrice": 9000})) == ["C"]
    assert sorted(titles(client.get("/api/apartments", params={"bedrooms": 3}))) == ["A", "B"]
    assert titles(client.get("/api/apartments", params={"bathrooms": 2})) == ["B"]
    assert sorted(titles(client.get("/api/apartments", params={"available": "true"}))) == ["A", "B"]
    # Any other value leaves availability unfiltered
    assert len(titles(client.get("/api/apartments", params={"available": "false"}))) == 3

    r = client.get("/api/apartments", params={"city": "Cairo", "maxPrice": 10000})
    assert r.json()["count"] == 1


def test_sorting(client: TestClient):
    token, _ = register(client, "host@example.com")
    create_apartment(client, token, title="A", price=12000)
    b = create_apartment(client, token, title="B", price=9000)
    c = create_apartment(client, token, title="C", price=15000)

    assert titles(client.get("/api/apartments", params={"sortBy": "price-low"})) == ["B", "A", "C"]
    assert titles(client.get("/api/apartments", params={"sortBy": "price-high"})) == ["C", "A", "B"]
    # Newest first; equal timestamps fall back to id
    assert titles(client.get("/api/apartments")) == ["C", "B", "A"]

    r1, _ = register(client, "r1@example.com")
    r2, _ = register(client, "r2@example.com")
    review(client, r1, b["id"], 5)
    review(client, r2, b["id"], 4)
    review(client, r1, c["id"], 3)

    assert titles(client.get("/api/apartments", params={"sortBy": "rating"})) == ["B", "C", "A"]
    assert client.get("/api/apartments", params={"sortBy": "cheapest"}).status_code == 400


def test_rating_aggregate_and_favorite_flag(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host)
    r1, _ = register(client, "r1@example.com")
    r2, _ = register(client, "r2@example.com")
    r3, _ = register(client, "r3@example.com")
    review(client, r1, apt["id"], 5)
    review(client, r2, apt["id"], 4)
    review(client, r3, apt["id"], 4)

    listed = client.get("/api/apartments").json()["data"][0]
    assert listed["rating"] == 4.3
    assert listed["review_count"] == 3
    assert listed["favorite"] is None

    assert client.post(f"/api/users/favorites/{apt['id']}", headers=auth_headers(r1)).status_code == 201
    assert client.get("/api/apartments", headers=auth_headers(r1)).json()["data"][0]["favorite"] is True
    assert client.get("/api/apartments", headers=auth_headers(r2)).json()["data"][0]["favorite"] is False

    detail = client.get(f"/api/apartments/{apt['id']}", headers=auth_headers(r1)).json()["data"]
    assert detail["favorite"] is True
    assert len(detail["reviews"]) == 3


def test_owner_only_update(client: TestClient):
    host, _ = register(client, "host@example.com")
    other, _ = register(client, "other@example.com")
    apt = create_apartment(client, host)

    r = client.put(f"/api/apartments/{apt['id']}", headers=auth_headers(other), json={"price": 1})
    assert r.status_code == 403
    assert r.json()["error"] == "FORBIDDEN"

    r = client.put(
        f"/api/apartments/{apt['id']}",
        headers=auth_headers(host),
        json={"price": 11000, "available": False, "title": None},
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["price"] == 11000
    assert data["available"] is False
    assert data["title"] == "Flat"


def test_delete_blocked_by_active_booking(client: TestClient):
    host, _ = register(client, "host@example.com")
    guest, _ = register(client, "guest@example.com")
    apt = create_apartment(client, host)

    start = date.today() + timedelta(days=5)
    r = client.post(
        "/api/bookings",
        headers=auth_headers(guest),
        json={
            "apartment_id": apt["id"],
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=10)).isoformat(),
            "name": "Guest",
            "email": "guest@example.com",
            "phone": "0100",
        },
    )
    assert r.status_code == 201, r.text
    booking_id = r.json()["data"]["id"]

    assert client.delete(f"/api/apartments/{apt['id']}", headers=auth_headers(guest)).status_code == 403

    r = client.delete(f"/api/apartments/{apt['id']}", headers=auth_headers(host))
    assert r.status_code == 409
    assert r.json()["error"] == "CONFLICT"

    client.put(f"/api/bookings/{booking_id}/cancel", headers=auth_headers(guest))
    r = client.delete(f"/api/apartments/{apt['id']}", headers=auth_headers(host))
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "message": "Apartment deleted successfully"}
    assert client.get(f"/api/apartments/{apt['id']}").status_code == 404


def test_seed_inserts_once_into_empty_table(db):
    assert seed_apartments(db) == len(SEED_APARTMENTS)
    assert seed_apartments(db) == 0

    rows = db.query(models.Apartment).order_by(models.Apartment.id).all()
    assert len(rows) == 6
    assert all(r.owner_id is None for r in rows)
    assert rows[0].available is False
    assert sum(1 for r in rows if r.available) == 5


def test_seed_listings_cannot_be_modified(client: TestClient, db):
    seed_apartments(db)
    apt_id = db.query(models.Apartment.id).order_by(models.Apartment.id).first()[0]
    token, _ = register(client, "someone@example.com")
    assert client.put(f"/api/apartments/{apt_id}", headers=auth_headers(token), json={"price": 1}).status_code == 403
    assert client.delete(f"/api/apartments/{apt_id}", headers=auth_headers(token)).status_code == 403
