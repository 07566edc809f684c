# Reviews and favorites API tests: one review per user and apartment, author-only edits, favorites membership.
from __future__ import annotations

from typing import Tuple

from fastapi.testclient import TestClient


def register(client: TestClient, email: str, name: str = "Test User") -> Tuple[str, dict]:
    r = client.post("/api/users/register", json={"name": name, "email": email, "password": "changeme123"})
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    return data["token"], data["user"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def create_apartment(client: TestClient, token: str, title: str = "Flat") -> dict:
    r = client.post(
        "/api/apartments",
        headers=auth_headers(token),
        json={"title": title, "price": 10000, "location": "Cairo", "region": "Heliopolis"},
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


# ----------------
# Reviews
# ----------------
def test_create_and_list_reviews(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host, title="Reviewed Flat")
    guest, guest_user = register(client, "guest@example.com", name="Mona")

    r = client.post(
        "/api/reviews",
        headers=auth_headers(guest),
        json={"apartment_id": apt["id"], "rating": 4, "comment": "Nice"},
    )
    assert r.status_code == 201, r.text
    created = r.json()["data"]
    assert created["user_name"] == "Mona"
    assert created["apartment_title"] == "Reviewed Flat"
    assert created["user_id"] == guest_user["id"]

    r = client.get(f"/api/reviews/apartment/{apt['id']}")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["stats"] == {"total_reviews": 1, "average_rating": 4.0}
    assert [rv["comment"] for rv in data["reviews"]] == ["Nice"]

    r = client.get("/api/reviews/user", headers=auth_headers(guest))
    assert r.json()["count"] == 1


def test_reviews_for_unknown_apartment(client: TestClient):
    guest, _ = register(client, "guest@example.com")
    assert client.get("/api/reviews/apartment/777").status_code == 404
    r = client.post("/api/reviews", headers=auth_headers(guest), json={"apartment_id": 777, "rating": 3})
    assert r.status_code == 404


def test_duplicate_review_conflicts(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host)
    guest, _ = register(client, "guest@example.com")

    body = {"apartment_id": apt["id"], "rating": 5}
    assert client.post("/api/reviews", headers=auth_headers(guest), json=body).status_code == 201
    r = client.post("/api/reviews", headers=auth_headers(guest), json=body)
    assert r.status_code == 409
    assert r.json()["error"] == "CONFLICT"
    assert r.json()["message"] == "You have already reviewed this apartment. Please update your existing review."


def test_rating_out_of_range(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host)
    guest, _ = register(client, "guest@example.com")

    for rating in (0, 6):
        r = client.post("/api/reviews", headers=auth_headers(guest), json={"apartment_id": apt["id"], "rating": rating})
        assert r.status_code == 400
        assert r.json()["error"] == "VALIDATION_ERROR"


def test_only_author_edits_review(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host)
    guest, _ = register(client, "guest@example.com")
    other, _ = register(client, "other@example.com")

    review = client.post(
        "/api/reviews", headers=auth_headers(guest), json={"apartment_id": apt["id"], "rating": 2}
    ).json()["data"]

    assert client.put(f"/api/reviews/{review['id']}", headers=auth_headers(other), json={"rating": 5}).status_code == 403
    assert client.delete(f"/api/reviews/{review['id']}", headers=auth_headers(other)).status_code == 403

    r = client.put(f"/api/reviews/{review['id']}", headers=auth_headers(guest), json={"rating": 5, "comment": "Better"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["rating"] == 5
    assert r.json()["data"]["comment"] == "Better"

    r = client.delete(f"/api/reviews/{review['id']}", headers=auth_headers(guest))
    assert r.status_code == 200
    assert client.put(f"/api/reviews/{review['id']}", headers=auth_headers(guest), json={"rating": 1}).status_code == 404


# ----------------
# Favorites
# ----------------
def test_add_list_remove_favorite(client: TestClient):
    host, _ = register(client, "host@example.com")
    first = create_apartment(client, host, title="First")
    second = create_apartment(client, host, title="Second")
    guest, _ = register(client, "guest@example.com")

    r = client.post(f"/api/users/favorites/{first['id']}", headers=auth_headers(guest))
    assert r.status_code == 201
    assert r.json() == {"success": True, "message": "Added to favorites"}

    r = client.post(f"/api/users/favorites/{first['id']}", headers=auth_headers(guest))
    assert r.status_code == 409
    assert r.json()["message"] == "Already in favorites"

    client.post(f"/api/users/favorites/{second['id']}", headers=auth_headers(guest))
    r = client.get("/api/users/favorites", headers=auth_headers(guest))
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 2
    assert {a["title"] for a in body["data"]} == {"First", "Second"}
    assert all(a["favorite"] is True for a in body["data"])

    r = client.delete(f"/api/users/favorites/{first['id']}", headers=auth_headers(guest))
    assert r.status_code == 200
    assert r.json()["message"] == "Removed from favorites"

    r = client.delete(f"/api/users/favorites/{first['id']}", headers=auth_headers(guest))
    assert r.status_code == 404
    assert r.json()["message"] == "Favorite not found"


def test_favorite_unknown_apartment(client: TestClient):
    guest, _ = register(client, "guest@example.com")
    assert client.post("/api/users/favorites/4040", headers=auth_headers(guest)).status_code == 404


def test_toggle_favorite(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host)
    guest, _ = register(client, "guest@example.com")

    r = client.post(f"/api/users/favorites/{apt['id']}/toggle", headers=auth_headers(guest))
    assert r.status_code == 201
    assert r.json()["data"] is True

    r = client.post(f"/api/users/favorites/{apt['id']}/toggle", headers=auth_headers(guest))
    assert r.status_code == 200
    assert r.json()["data"] is False
    assert client.get("/api/users/favorites", headers=auth_headers(guest)).json()["count"] == 0


def test_favorites_are_per_user(client: TestClient):
    host, _ = register(client, "host@example.com")
    apt = create_apartment(client, host)
    a, _ = register(client, "a@example.com")
    b, _ = register(client, "b@example.com")

    client.post(f"/api/users/favorites/{apt['id']}", headers=auth_headers(a))
    assert client.get("/api/users/favorites", headers=auth_headers(b)).json()["count"] == 0
    assert client.get("/api/users/favorites").status_code == 401
