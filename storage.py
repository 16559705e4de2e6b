# =============================================================
# 🗃️ STORAGE — Data access & lending bookkeeping (LibraryFlow)
# =============================================================
"""Queries and writes shared by the routers.

Functions take an open ``Session`` and commit their own work. Lookups that
find nothing raise ``LookupError`` and rule violations raise ``ValueError``.
Routers translate those into HTTP status codes.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, delete, func, or_, update
from sqlmodel import Session, select

from models import (
    Book,
    Fine,
    Payment,
    Reservation,
    User,
    UserSession,
    FINE_PAID,
    FINE_UNPAID,
    PAYMENT_COMPLETED,
    PAYMENT_PENDING,
    RESERVATION_ACTIVE,
    ROLE_ADMIN,
)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

REQUIRED_BOOK_FIELDS = ("title", "author", "genre", "total_copies", "available_copies")


def utcnow() -> datetime:
    return datetime.utcnow()


def naive_utc(value: datetime) -> datetime:
    """Columns hold naive UTC timestamps."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# -------------------------------------------------------------
# 👤 Users
# -------------------------------------------------------------
def get_user(session: Session, user_id: str) -> Optional[User]:
    return session.get(User, user_id)


def upsert_user(session: Session, claims: Dict, admin_emails: Iterable[str] = ()) -> User:
    """Create or refresh the user row behind a set of identity claims.

    The role of an existing user is kept, except that emails listed in
    ``admin_emails`` are always promoted to admin. An email already held by
    another account is not copied over; the stored one stays.
    """
    user = session.get(User, claims["sub"])
    if user is None:
        user = User(id=claims["sub"])

    email = claims.get("email")
    if email:
        taken = session.exec(
            select(User.id).where(User.email == email, User.id != user.id)
        ).first()
        if taken is None:
            user.email = email
        else:
            email = None
    user.first_name = claims.get("first_name")
    user.last_name = claims.get("last_name")
    user.profile_image_url = claims.get("profile_image_url")
    user.updated_at = utcnow()
    if email and email.lower() in set(admin_emails):
        user.role = ROLE_ADMIN

    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def list_users(session: Session) -> List[User]:
    return session.exec(select(User).order_by(User.created_at.desc())).all()


def update_user(session: Session, user_id: str, updates: Dict) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise LookupError("User not found")
    for key, value in updates.items():
        setattr(user, key, value)
    user.updated_at = utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def delete_user(session: Session, user_id: str) -> None:
    """Remove a user along with their history.

    Refused while the user still holds books, since their copies would never
    come back to the shelf.
    """
    user = session.get(User, user_id)
    if user is None:
        raise LookupError("User not found")

    holding = session.exec(
        select(func.count(Reservation.id)).where(
            Reservation.user_id == user_id, Reservation.status == RESERVATION_ACTIVE
        )
    ).one()
    if holding:
        raise ValueError("User has active reservations")

    try:
        session.exec(delete(Payment).where(Payment.user_id == user_id))
        session.exec(delete(Fine).where(Fine.user_id == user_id))
        session.exec(delete(Reservation).where(Reservation.user_id == user_id))
        session.exec(delete(UserSession).where(UserSession.user_id == user_id))
        session.delete(user)
        session.commit()
    except Exception:
        session.rollback()
        raise


# -------------------------------------------------------------
# 🔐 Sessions
# -------------------------------------------------------------
def create_user_session(session: Session, user: User, ttl: timedelta) -> UserSession:
    expire = utcnow() + ttl
    record = UserSession(
        sid=uuid.uuid4().hex,
        user_id=user.id,
        expire=expire,
        sess={
            "claims": {
                "sub": user.id,
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "profile_image_url": user.profile_image_url,
                "exp": int(expire.replace(tzinfo=timezone.utc).timestamp()),
            }
        },
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def get_user_session(session: Session, sid: str) -> Optional[UserSession]:
    return session.get(UserSession, sid)


def delete_user_session(session: Session, sid: str) -> None:
    session.exec(delete(UserSession).where(UserSession.sid == sid))
    session.commit()


# -------------------------------------------------------------
# 📚 Books
# -------------------------------------------------------------
def search_books(
    session: Session,
    query: str = "",
    genre: Optional[str] = None,
    author: Optional[str] = None,
    availability: Optional[str] = None,
    year_from: Optional[int] = None,
    year_to: Optional[int] = None,
) -> List[Book]:
    statement = select(Book)

    if query:
        pattern = f"%{query}%"
        statement = statement.where(
            or_(Book.title.ilike(pattern), Book.author.ilike(pattern), Book.isbn.ilike(pattern))
        )
    if genre:
        statement = statement.where(Book.genre == genre)
    if author:
        statement = statement.where(Book.author.ilike(f"%{author}%"))
    if availability == "available":
        statement = statement.where(Book.available_copies > 0)
    elif availability == "unavailable":
        statement = statement.where(Book.available_copies == 0)
    if year_from is not None:
        statement = statement.where(Book.publication_year >= year_from)
    if year_to is not None:
        statement = statement.where(Book.publication_year <= year_to)

    return session.exec(statement.order_by(Book.created_at.desc(), Book.id.desc())).all()


def get_book(session: Session, book_id: int) -> Optional[Book]:
    return session.get(Book, book_id)


def create_book(session: Session, data: Dict) -> Book:
    book = Book(**data)
    session.add(book)
    session.commit()
    session.refresh(book)
    return book


def update_book(session: Session, book_id: int, updates: Dict) -> Book:
    book = session.get(Book, book_id)
    if book is None:
        raise LookupError("Book not found")

    for key in REQUIRED_BOOK_FIELDS:
        if key in updates and updates[key] is None:
            raise ValueError(f"{key} cannot be empty")

    total = updates.get("total_copies", book.total_copies)
    available = updates.get("available_copies", book.available_copies)
    if available > total:
        raise ValueError("availableCopies cannot exceed totalCopies")

    for key, value in updates.items():
        setattr(book, key, value)
    book.updated_at = utcnow()
    session.add(book)
    session.commit()
    session.refresh(book)
    return book


def delete_book(session: Session, book_id: int) -> None:
    """Remove a book and its closed loan history.

    Refused while a copy is out on loan.
    """
    book = session.get(Book, book_id)
    if book is None:
        raise LookupError("Book not found")

    on_loan = session.exec(
        select(func.count(Reservation.id)).where(
            Reservation.book_id == book_id, Reservation.status == RESERVATION_ACTIVE
        )
    ).one()
    if on_loan:
        raise ValueError("Book has active reservations")

    try:
        history = select(Reservation.id).where(Reservation.book_id == book_id)
        session.exec(
            update(Fine)
            .where(Fine.reservation_id.in_(history))
            .values(reservation_id=None)
            .execution_options(synchronize_session=False)
        )
        session.exec(delete(Reservation).where(Reservation.book_id == book_id))
        session.delete(book)
        session.commit()
    except Exception:
        session.rollback()
        raise


# -------------------------------------------------------------
# 📅 Reservations
# -------------------------------------------------------------
def create_reservation(
    session: Session,
    user_id: str,
    book_id: int,
    loan_period_days: int = 14,
    now: Optional[datetime] = None,
) -> Reservation:
    """Take one copy off the shelf and record the loan, as a single unit.

    The decrement is conditional on a copy being left, so two requests racing
    for the last copy cannot both succeed.
    """
    now = now or utcnow()
    try:
        taken = session.exec(
            update(Book)
            .where(Book.id == book_id, Book.available_copies > 0)
            .values(available_copies=Book.available_copies - 1, updated_at=now)
        )
        if taken.rowcount != 1:
            raise ValueError("Book is not available")

        reservation = Reservation(
            user_id=user_id,
            book_id=book_id,
            status=RESERVATION_ACTIVE,
            reserved_at=now,
            due_date=now + timedelta(days=loan_period_days),
        )
        session.add(reservation)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(reservation)
    return reservation


def get_reservation(session: Session, reservation_id: int) -> Optional[Reservation]:
    return session.get(Reservation, reservation_id)


def close_reservation(
    session: Session,
    reservation: Reservation,
    status: str,
    completed_at: Optional[datetime] = None,
) -> Reservation:
    """Move an active reservation to ``completed`` or ``cancelled``.

    The copy goes back on the shelf in the same transaction, never above
    ``total_copies``. Repeating the current status is a no-op.
    """
    if status == reservation.status:
        return reservation
    if reservation.status != RESERVATION_ACTIVE:
        raise ValueError(f"Reservation is already {reservation.status}")
    if status == RESERVATION_ACTIVE:
        raise ValueError("Reservation is already active")

    now = utcnow()
    try:
        closed = session.exec(
            update(Reservation)
            .where(Reservation.id == reservation.id, Reservation.status == RESERVATION_ACTIVE)
            .values(status=status, completed_at=naive_utc(completed_at) if completed_at else now)
        )
        if closed.rowcount == 1:
            session.exec(
                update(Book)
                .where(Book.id == reservation.book_id, Book.available_copies < Book.total_copies)
                .values(available_copies=Book.available_copies + 1, updated_at=now)
            )
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(reservation)
    return reservation


def list_user_reservations(session: Session, user_id: str) -> List[Tuple[Reservation, Book]]:
    statement = (
        select(Reservation, Book)
        .join(Book, Reservation.book_id == Book.id)
        .where(Reservation.user_id == user_id)
        .order_by(Reservation.reserved_at.desc(), Reservation.id.desc())
    )
    return session.exec(statement).all()


def list_active_reservations(session: Session) -> List[Tuple[Reservation, User, Book]]:
    statement = (
        select(Reservation, User, Book)
        .join(User, Reservation.user_id == User.id)
        .join(Book, Reservation.book_id == Book.id)
        .where(Reservation.status == RESERVATION_ACTIVE)
        .order_by(Reservation.reserved_at.desc(), Reservation.id.desc())
    )
    return session.exec(statement).all()


def list_overdue_reservations(
    session: Session, now: Optional[datetime] = None
) -> List[Tuple[Reservation, User, Book]]:
    now = now or utcnow()
    statement = (
        select(Reservation, User, Book)
        .join(User, Reservation.user_id == User.id)
        .join(Book, Reservation.book_id == Book.id)
        .where(Reservation.status == RESERVATION_ACTIVE, Reservation.due_date < now)
        .order_by(Reservation.due_date.desc())
    )
    return session.exec(statement).all()


# -------------------------------------------------------------
# 📊 Dashboard
# -------------------------------------------------------------
def dashboard_stats(
    session: Session, user_id: str, due_soon_days: int = 3, now: Optional[datetime] = None
) -> Dict:
    now = now or utcnow()

    active = session.exec(
        select(func.count(Reservation.id)).where(
            Reservation.user_id == user_id, Reservation.status == RESERVATION_ACTIVE
        )
    ).one()
    available = session.exec(select(func.coalesce(func.sum(Book.available_copies), 0))).one()
    due_soon = session.exec(
        select(func.count(Reservation.id)).where(
            Reservation.user_id == user_id,
            Reservation.status == RESERVATION_ACTIVE,
            Reservation.due_date >= now,
            Reservation.due_date <= now + timedelta(days=due_soon_days),
        )
    ).one()

    # The stored balance is authoritative; fine rows are not summed here.
    user = session.get(User, user_id)
    balance = user.outstanding_fines if user and user.outstanding_fines is not None else ZERO

    return {
        "active_reservations": int(active or 0),
        "available_books": int(available or 0),
        "due_soon": int(due_soon or 0),
        "outstanding_fines": Decimal(balance).quantize(CENT),
    }


# -------------------------------------------------------------
# 💸 Fines & payments
# -------------------------------------------------------------
def list_user_fines(session: Session, user_id: str) -> List[Fine]:
    statement = select(Fine).where(Fine.user_id == user_id).order_by(Fine.created_at.desc(), Fine.id.desc())
    return session.exec(statement).all()


def list_user_payments(session: Session, user_id: str) -> List[Payment]:
    statement = (
        select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc(), Payment.id.desc())
    )
    return session.exec(statement).all()


def check_payable_fine(session: Session, user_id: str, fine_id: int) -> Fine:
    fine = session.get(Fine, fine_id)
    if fine is None or fine.user_id != user_id:
        raise LookupError("Fine not found")
    if fine.status != FINE_UNPAID:
        raise ValueError("Fine is already paid")
    return fine


def record_payment(
    session: Session,
    user_id: str,
    amount: Decimal,
    payment_intent_id: str,
    fine_id: Optional[int] = None,
) -> Payment:
    payment = Payment(
        user_id=user_id,
        fine_id=fine_id,
        amount=Decimal(amount).quantize(CENT),
        stripe_payment_intent_id=payment_intent_id,
        status=PAYMENT_PENDING,
    )
    session.add(payment)
    session.commit()
    session.refresh(payment)
    return payment


def confirm_payment(session: Session, user_id: str, payment_intent_id: str) -> Payment:
    """Mark a pending payment completed and settle the user's balance.

    The balance never drops below zero. Confirming the same payment twice
    applies it once.
    """
    payment = session.exec(
        select(Payment).where(
            Payment.user_id == user_id, Payment.stripe_payment_intent_id == payment_intent_id
        )
    ).first()
    if payment is None:
        raise LookupError("Payment not found")

    now = utcnow()
    amount = payment.amount
    try:
        settled = session.exec(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PAYMENT_PENDING)
            .values(status=PAYMENT_COMPLETED, completed_at=now)
        )
        if settled.rowcount == 1:
            session.exec(
                update(User)
                .where(User.id == user_id)
                .values(
                    outstanding_fines=case(
                        (User.outstanding_fines > amount, User.outstanding_fines - amount),
                        else_=ZERO,
                    ),
                    updated_at=now,
                )
            )
            if payment.fine_id is not None:
                session.exec(
                    update(Fine)
                    .where(Fine.id == payment.fine_id, Fine.status == FINE_UNPAID)
                    .values(status=FINE_PAID, paid_at=now)
                )
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(payment)
    return payment
