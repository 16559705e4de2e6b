from datetime import datetime, timedelta
from decimal import Decimal

import storage
from models import Fine, User


def _set_balance(db, user_id, amount):
    user = db.get(User, user_id)
    user.outstanding_fines = Decimal(amount)
    db.add(user)
    db.commit()


def test_dashboard_counts_due_soon_window(client, db, user_headers, make_book):
    book = make_book(total_copies=10, available_copies=10)
    now = datetime.utcnow()
    storage.create_reservation(db, "reader", book.id, now=now - timedelta(days=12))  # due in 2 days
    storage.create_reservation(db, "reader", book.id, now=now - timedelta(days=5))  # due in 9 days
    storage.create_reservation(db, "reader", book.id, now=now - timedelta(days=20))  # overdue
    returned = storage.create_reservation(db, "reader", book.id, now=now - timedelta(days=13))
    storage.close_reservation(db, returned, "completed")

    response = client.get("/api/dashboard/stats", headers=user_headers)

    assert response.status_code == 200
    stats = response.json()
    assert stats["dueSoon"] == 1
    assert stats["activeReservations"] == 3
    assert stats["availableBooks"] == 7


def test_dashboard_ignores_other_readers(client, db, login, make_book):
    book = make_book()
    mine, theirs = login("mine"), login("theirs")
    client.post("/api/reservations", json={"bookId": book.id}, headers=theirs)

    stats = client.get("/api/dashboard/stats", headers=mine).json()

    assert stats["activeReservations"] == 0
    assert stats["dueSoon"] == 0


def test_dashboard_balance_is_the_stored_field(client, db, user_headers):
    _set_balance(db, "reader", "12.50")
    db.add(Fine(user_id="reader", amount=Decimal("99.00"), reason="Lost book"))
    db.commit()

    stats = client.get("/api/dashboard/stats", headers=user_headers).json()

    assert Decimal(stats["outstandingFines"]) == Decimal("12.50")


def test_dashboard_requires_login(client):
    assert client.get("/api/dashboard/stats").status_code == 401


def test_list_own_fines(client, db, login):
    headers = login("reader")
    login("other")
    db.add(Fine(user_id="reader", amount=Decimal("2.00"), reason="Late return"))
    db.add(Fine(user_id="other", amount=Decimal("5.00"), reason="Damaged cover"))
    db.commit()

    response = client.get("/api/fines", headers=headers)

    assert response.status_code == 200
    [fine] = response.json()
    assert fine["reason"] == "Late return"
    assert fine["status"] == "unpaid"


def test_list_payments_starts_empty(client, user_headers):
    response = client.get("/api/payments", headers=user_headers)

    assert response.status_code == 200
    assert response.json() == []


def test_update_profile(client, user_headers):
    response = client.put(
        "/api/profile", json={"firstName": "Rita", "lastName": "Book"}, headers=user_headers
    )

    assert response.status_code == 200
    assert response.json()["firstName"] == "Rita"
    assert client.get("/api/auth/user", headers=user_headers).json()["lastName"] == "Book"


def test_update_profile_rejects_taken_email(client, login):
    headers = login("reader")
    login("other")

    response = client.put("/api/profile", json={"email": "other@libraryflow.com"}, headers=headers)

    assert response.status_code == 400
