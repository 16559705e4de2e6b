# =============================================================
# 🧱 MODELS — SQLModel tables (LibraryFlow)
# =============================================================

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import SQLModel, Field

# -------------------------------------------------------------
# Status vocabularies
# -------------------------------------------------------------
ROLE_USER = "user"
ROLE_ADMIN = "admin"

RESERVATION_ACTIVE = "active"
RESERVATION_COMPLETED = "completed"
RESERVATION_CANCELLED = "cancelled"
RESERVATION_STATUSES = (RESERVATION_ACTIVE, RESERVATION_COMPLETED, RESERVATION_CANCELLED)

FINE_UNPAID = "unpaid"
FINE_PAID = "paid"

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"


# -------------------------------------------------------------
# 🔐 Sessions
# -------------------------------------------------------------
class UserSession(SQLModel, table=True):
    __tablename__ = "sessions"

    sid: str = Field(primary_key=True)
    user_id: Optional[str] = Field(default=None, index=True)
    sess: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    expire: datetime = Field(index=True)


# -------------------------------------------------------------
# 👤 Users
# -------------------------------------------------------------
class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    email: Optional[str] = Field(default=None, index=True, unique=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str = Field(default=ROLE_USER)
    stripe_customer_id: Optional[str] = None
    outstanding_fines: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# -------------------------------------------------------------
# 📚 Books
# -------------------------------------------------------------
class Book(SQLModel, table=True):
    __tablename__ = "books"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    author: str
    isbn: Optional[str] = Field(default=None, max_length=13, unique=True)
    genre: str
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    cover_url: Optional[str] = None
    publication_year: Optional[int] = None
    total_copies: int = 1
    available_copies: int = 1
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# -------------------------------------------------------------
# 📅 Reservations
# -------------------------------------------------------------
class Reservation(SQLModel, table=True):
    __tablename__ = "reservations"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    book_id: int = Field(foreign_key="books.id", index=True)
    status: str = Field(default=RESERVATION_ACTIVE)
    reserved_at: datetime = Field(default_factory=datetime.utcnow)
    due_date: datetime
    completed_at: Optional[datetime] = None


# -------------------------------------------------------------
# 💸 Fines & payments
# -------------------------------------------------------------
class Fine(SQLModel, table=True):
    __tablename__ = "fines"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    reservation_id: Optional[int] = Field(default=None, foreign_key="reservations.id")
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    reason: str
    status: str = Field(default=FINE_UNPAID)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    paid_at: Optional[datetime] = None


class Payment(SQLModel, table=True):
    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    fine_id: Optional[int] = Field(default=None, foreign_key="fines.id")
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    stripe_payment_intent_id: Optional[str] = Field(default=None, index=True)
    status: str = Field(default=PAYMENT_PENDING)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
