from decimal import Decimal

from sqlmodel import select

from models import Fine, Reservation


BOOK = {
    "title": "The Left Hand of Darkness",
    "author": "Ursula K. Le Guin",
    "isbn": "9780441478125",
    "genre": "Science Fiction",
    "publicationYear": 1969,
    "totalCopies": 3,
}


def test_list_books_is_public_and_empty(client):
    response = client.get("/api/books")

    assert response.status_code == 200
    assert response.json() == []


def test_admin_creates_book(client, admin_headers):
    response = client.post("/api/books", json=BOOK, headers=admin_headers)

    assert response.status_code == 201
    book = response.json()
    assert book["title"] == BOOK["title"]
    assert book["totalCopies"] == 3
    assert book["availableCopies"] == 3
    assert client.get(f"/api/books/{book['id']}").json()["isbn"] == BOOK["isbn"]


def test_create_book_requires_admin(client, user_headers):
    response = client.post("/api/books", json=BOOK, headers=user_headers)

    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required"


def test_create_book_requires_login(client):
    assert client.post("/api/books", json=BOOK).status_code == 401


def test_create_book_reports_field_errors(client, admin_headers):
    payload = {k: v for k, v in BOOK.items() if k != "title"}

    response = client.post("/api/books", json=payload, headers=admin_headers)

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid book data"
    assert "title" in [error["field"] for error in body["errors"]]


def test_create_book_rejects_more_available_than_total(client, admin_headers):
    response = client.post(
        "/api/books", json={**BOOK, "totalCopies": 1, "availableCopies": 2}, headers=admin_headers
    )

    assert response.status_code == 400


def test_create_book_rejects_duplicate_isbn(client, admin_headers):
    client.post("/api/books", json=BOOK, headers=admin_headers)

    response = client.post("/api/books", json=BOOK, headers=admin_headers)

    assert response.status_code == 400


def test_get_missing_book(client):
    response = client.get("/api/books/999")

    assert response.status_code == 404
    assert response.json() == {"message": "Book not found"}


def test_search_and_filters(client, make_book):
    make_book(title="Dune", author="Frank Herbert", genre="Science Fiction", publication_year=1965)
    make_book(title="Emma", author="Jane Austen", genre="Classic", publication_year=1815,
              available_copies=0)
    make_book(title="Persuasion", author="Jane Austen", genre="Classic", publication_year=1817)

    def titles(**params):
        return sorted(b["title"] for b in client.get("/api/books", params=params).json())

    assert titles(search="austen") == ["Emma", "Persuasion"]
    assert titles(search="DUNE") == ["Dune"]
    assert titles(genre="Classic") == ["Emma", "Persuasion"]
    assert titles(author="herb") == ["Dune"]
    assert titles(availability="available") == ["Dune", "Persuasion"]
    assert titles(availability="unavailable") == ["Emma"]
    assert titles(yearFrom=1816, yearTo=1900) == ["Persuasion"]


def test_search_matches_isbn(client, make_book):
    make_book(title="Dune", isbn="9780441172719")

    response = client.get("/api/books", params={"search": "0441172"})

    assert [b["title"] for b in response.json()] == ["Dune"]


def test_update_book_partially(client, admin_headers, make_book):
    book = make_book()

    response = client.put(f"/api/books/{book.id}", json={"genre": "Classic"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["genre"] == "Classic"
    assert response.json()["title"] == "Dune"


def test_update_book_keeps_copies_consistent(client, admin_headers, make_book):
    book = make_book(total_copies=2, available_copies=2)

    response = client.put(f"/api/books/{book.id}", json={"totalCopies": 1}, headers=admin_headers)

    assert response.status_code == 400


def test_update_missing_book(client, admin_headers):
    response = client.put("/api/books/999", json={"genre": "Classic"}, headers=admin_headers)

    assert response.status_code == 404


def test_delete_book(client, admin_headers, make_book):
    book = make_book()

    response = client.delete(f"/api/books/{book.id}", headers=admin_headers)

    assert response.status_code == 204
    assert client.get(f"/api/books/{book.id}").status_code == 404
    assert client.delete(f"/api/books/{book.id}", headers=admin_headers).status_code == 404


def test_delete_book_on_loan_is_refused(client, db, admin_headers, user_headers, make_book):
    book = make_book()
    client.post("/api/reservations", json={"bookId": book.id}, headers=user_headers)

    response = client.delete(f"/api/books/{book.id}", headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"message": "Book has active reservations"}
    assert client.get(f"/api/books/{book.id}").status_code == 200
    assert client.get("/api/dashboard/stats", headers=user_headers).json()["activeReservations"] == 1


def test_delete_returned_book_clears_its_history(client, db, admin_headers, user_headers, make_book):
    book = make_book()
    reservation = client.post("/api/reservations", json={"bookId": book.id}, headers=user_headers).json()
    client.put(f"/api/reservations/{reservation['id']}", json={"status": "completed"}, headers=user_headers)
    db.add(Fine(user_id="reader", reservation_id=reservation["id"], amount=Decimal("1.00"), reason="Late return"))
    db.commit()

    response = client.delete(f"/api/books/{book.id}", headers=admin_headers)

    assert response.status_code == 204
    db.expire_all()
    assert db.exec(select(Reservation)).all() == []
    assert db.exec(select(Fine)).one().reservation_id is None
