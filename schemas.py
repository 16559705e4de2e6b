# =============================================================
# 🧾 SCHEMAS — Request / response bodies (LibraryFlow)
# JSON uses camelCase, Python attributes stay snake_case.
# =============================================================

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------------------------------------------------
# 👤 Users & auth
# -------------------------------------------------------------
class UserRead(ApiModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    stripe_customer_id: Optional[str] = None
    outstanding_fines: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoginRequest(ApiModel):
    id_token: Optional[str] = None


class LoginResponse(ApiModel):
    success: bool = True
    message: str
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserRead


class AuthConfig(ApiModel):
    auth_mode: str
    payments_enabled: bool
    mock_data: bool


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class AdminUserUpdate(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None
    outstanding_fines: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)


# -------------------------------------------------------------
# 📚 Books
# -------------------------------------------------------------
class BookRead(ApiModel):
    id: int
    title: str
    author: str
    isbn: Optional[str] = None
    genre: str
    description: Optional[str] = None
    cover_url: Optional[str] = None
    publication_year: Optional[int] = None
    total_copies: int
    available_copies: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookCreate(ApiModel):
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    isbn: Optional[str] = Field(default=None, max_length=13)
    genre: str = Field(min_length=1)
    description: Optional[str] = None
    cover_url: Optional[str] = None
    publication_year: Optional[int] = None
    total_copies: int = Field(default=1, ge=0)
    available_copies: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_copies(self):
        if self.available_copies is None:
            self.available_copies = self.total_copies
        if self.available_copies > self.total_copies:
            raise ValueError("availableCopies cannot exceed totalCopies")
        return self


class BookUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1)
    author: Optional[str] = Field(default=None, min_length=1)
    isbn: Optional[str] = Field(default=None, max_length=13)
    genre: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    cover_url: Optional[str] = None
    publication_year: Optional[int] = None
    total_copies: Optional[int] = Field(default=None, ge=0)
    available_copies: Optional[int] = Field(default=None, ge=0)


# -------------------------------------------------------------
# 📅 Reservations
# -------------------------------------------------------------
class ReservationCreate(ApiModel):
    book_id: int


class ReservationUpdate(ApiModel):
    status: Literal["active", "completed", "cancelled"]
    completed_at: Optional[datetime] = None


class ReservationRead(ApiModel):
    id: int
    user_id: str
    book_id: int
    status: str
    reserved_at: datetime
    due_date: datetime
    completed_at: Optional[datetime] = None


class ReservationWithBook(ReservationRead):
    book: BookRead


class ReservationDetail(ReservationWithBook):
    user: UserRead


# -------------------------------------------------------------
# 💸 Fines, payments, dashboard
# -------------------------------------------------------------
class FineRead(ApiModel):
    id: int
    user_id: str
    reservation_id: Optional[int] = None
    amount: Decimal
    reason: str
    status: str
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class PaymentRead(ApiModel):
    id: int
    user_id: str
    fine_id: Optional[int] = None
    amount: Decimal
    stripe_payment_intent_id: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class PaymentIntentRequest(ApiModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    fine_id: Optional[int] = None


class PaymentIntentResponse(ApiModel):
    client_secret: str
    payment_intent_id: str


class PaymentConfirmRequest(ApiModel):
    payment_intent_id: str = Field(min_length=1)


class DashboardStats(ApiModel):
    active_reservations: int
    available_books: int
    due_soon: int
    outstanding_fines: Decimal


class StatusMessage(ApiModel):
    success: bool = True
    message: Optional[str] = None
