# =============================================================
# 🛡️ ROUTES ADMIN — Users & circulation overview (LibraryFlow)
# =============================================================
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlmodel import Session

import storage
from database import get_session
from models import User
from schemas import AdminUserUpdate, BookRead, ReservationDetail, UserRead
from security import require_admin

logger = logging.getLogger("uvicorn")

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def _detail(reservation, user, book) -> ReservationDetail:
    return ReservationDetail(
        **reservation.model_dump(),
        user=UserRead.model_validate(user),
        book=BookRead.model_validate(book),
    )


# -------------------------------------------------------------
# 👥 USERS
# -------------------------------------------------------------
@router.get("/users", response_model=List[UserRead])
def list_users(
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    try:
        return [UserRead.model_validate(u) for u in storage.list_users(session)]
    except Exception as e:
        logger.error(f"❌ Error fetching users: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch users")


@router.put("/users/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    data: AdminUserUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Change a user's role, names or stored fine balance.
    """
    try:
        user = storage.update_user(session, user_id, data.model_dump(exclude_unset=True, exclude_none=True))
        logger.info(f"🛡️ User {user_id} updated by {admin.id}")
        return UserRead.model_validate(user)
    except LookupError:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Error updating user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update user")


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    user_id: str,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    if user_id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    try:
        storage.delete_user(session, user_id)
        logger.info(f"🗑️ User {user_id} deleted by {admin.id}")
    except LookupError:
        raise HTTPException(status_code=404, detail="User not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"❌ Error deleting user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete user")
    return Response(status_code=204)


# -------------------------------------------------------------
# 📅 RESERVATIONS
# -------------------------------------------------------------
@router.get("/reservations", response_model=List[ReservationDetail])
def active_reservations(
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    try:
        return [_detail(*row) for row in storage.list_active_reservations(session)]
    except Exception as e:
        logger.error(f"❌ Error fetching admin reservations: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch reservations")


@router.get("/reservations/overdue", response_model=List[ReservationDetail])
def overdue_reservations(
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    try:
        return [_detail(*row) for row in storage.list_overdue_reservations(session)]
    except Exception as e:
        logger.error(f"❌ Error fetching overdue reservations: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch overdue reservations")
