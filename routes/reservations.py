# =============================================================
# 📅 ROUTES RESERVATIONS — Borrowing & returning (LibraryFlow)
# =============================================================
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

import storage
from config import Settings, get_settings
from database import get_session
from models import ROLE_ADMIN, User
from schemas import BookRead, ReservationCreate, ReservationRead, ReservationUpdate, ReservationWithBook
from security import get_current_user

logger = logging.getLogger("uvicorn")

router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


@router.get("", response_model=List[ReservationWithBook])
def list_reservations(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    The caller's reservations with their book, newest first.
    """
    try:
        rows = storage.list_user_reservations(session, current_user.id)
        return [
            ReservationWithBook(**reservation.model_dump(), book=BookRead.model_validate(book))
            for reservation, book in rows
        ]
    except Exception as e:
        logger.error(f"❌ Error fetching reservations: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch reservations")


@router.post("", response_model=ReservationRead, status_code=201)
def create_reservation(
    data: ReservationCreate,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    """
    Reserve one copy of a book for the loan period.
    """
    try:
        reservation = storage.create_reservation(
            session, current_user.id, data.book_id, loan_period_days=settings.loan_period_days
        )
        logger.info(f"📕 Book {data.book_id} reserved by {current_user.id}")
        return ReservationRead.model_validate(reservation)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Error creating reservation: {e}")
        raise HTTPException(status_code=500, detail="Failed to create reservation")


@router.put("/{reservation_id}", response_model=ReservationRead)
def update_reservation(
    reservation_id: int,
    data: ReservationUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Return (``completed``) or cancel a reservation. The copy goes back on the shelf.
    """
    reservation = storage.get_reservation(session, reservation_id)
    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")
    if reservation.user_id != current_user.id and current_user.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Not your reservation")

    try:
        reservation = storage.close_reservation(session, reservation, data.status, data.completed_at)
        return ReservationRead.model_validate(reservation)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Error updating reservation {reservation_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update reservation")
