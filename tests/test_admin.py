from datetime import datetime, timedelta
from decimal import Decimal

import storage
from models import User


def test_admin_lists_users(client, admin_headers, user_headers):
    response = client.get("/api/admin/users", headers=admin_headers)

    assert response.status_code == 200
    assert sorted(u["id"] for u in response.json()) == ["admin", "reader"]


def test_admin_routes_require_admin(client, user_headers):
    for path in ("/api/admin/users", "/api/admin/reservations", "/api/admin/reservations/overdue"):
        response = client.get(path, headers=user_headers)
        assert response.status_code == 403
        assert response.json() == {"message": "Admin access required"}


def test_admin_updates_role_and_balance(client, db, admin_headers, user_headers):
    response = client.put(
        "/api/admin/users/reader",
        json={"role": "admin", "outstandingFines": 7.25},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["role"] == "admin"
    db.expire_all()
    assert db.get(User, "reader").outstanding_fines == Decimal("7.25")


def test_admin_update_rejects_negative_balance(client, admin_headers, user_headers):
    response = client.put(
        "/api/admin/users/reader", json={"outstandingFines": -1}, headers=admin_headers
    )

    assert response.status_code == 400


def test_admin_update_missing_user(client, admin_headers):
    response = client.put("/api/admin/users/ghost", json={"role": "admin"}, headers=admin_headers)

    assert response.status_code == 404


def test_admin_deletes_user(client, db, admin_headers, user_headers):
    response = client.delete("/api/admin/users/reader", headers=admin_headers)

    assert response.status_code == 204
    db.expire_all()
    assert db.get(User, "reader") is None
    assert client.get("/api/auth/user", headers=user_headers).status_code == 401


def test_admin_cannot_delete_self(client, admin_headers):
    response = client.delete("/api/admin/users/admin", headers=admin_headers)

    assert response.status_code == 400


def test_admin_cannot_delete_reader_holding_books(client, admin_headers, user_headers, make_book):
    book = make_book()
    client.post("/api/reservations", json={"bookId": book.id}, headers=user_headers)

    response = client.delete("/api/admin/users/reader", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "User has active reservations"


def test_admin_delete_missing_user(client, admin_headers):
    assert client.delete("/api/admin/users/ghost", headers=admin_headers).status_code == 404


def test_admin_sees_active_reservations(client, admin_headers, user_headers, make_book):
    kept = make_book(title="Kept")
    returned = make_book(title="Returned")
    client.post("/api/reservations", json={"bookId": kept.id}, headers=user_headers)
    done = client.post("/api/reservations", json={"bookId": returned.id}, headers=user_headers).json()
    client.put(f"/api/reservations/{done['id']}", json={"status": "completed"}, headers=user_headers)

    response = client.get("/api/admin/reservations", headers=admin_headers)

    assert response.status_code == 200
    [row] = response.json()
    assert row["book"]["title"] == "Kept"
    assert row["user"]["id"] == "reader"


def test_admin_sees_overdue_reservations(client, db, admin_headers, user_headers, make_book):
    late = make_book(title="Late")
    on_time = make_book(title="On time")
    storage.create_reservation(db, "reader", late.id, now=datetime.utcnow() - timedelta(days=15))
    storage.create_reservation(db, "reader", on_time.id)

    response = client.get("/api/admin/reservations/overdue", headers=admin_headers)

    assert [row["book"]["title"] for row in response.json()] == ["Late"]
