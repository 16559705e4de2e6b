# =============================================================
# 🙋 ROUTES ACCOUNT — Dashboard, fines, payments, profile (LibraryFlow)
# =============================================================
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

import storage
from config import Settings, get_settings
from database import get_session
from models import User
from schemas import DashboardStats, FineRead, PaymentRead, ProfileUpdate, UserRead
from security import get_current_user

logger = logging.getLogger("uvicorn")

router = APIRouter(prefix="/api", tags=["Account"])


@router.get("/dashboard/stats", response_model=DashboardStats)
def dashboard_stats(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: User = Depends(get_current_user),
):
    try:
        stats = storage.dashboard_stats(session, current_user.id, due_soon_days=settings.due_soon_days)
        return DashboardStats(**stats)
    except Exception as e:
        logger.error(f"❌ Error fetching dashboard stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch dashboard stats")


@router.get("/fines", response_model=List[FineRead])
def list_fines(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return [FineRead.model_validate(f) for f in storage.list_user_fines(session, current_user.id)]
    except Exception as e:
        logger.error(f"❌ Error fetching fines: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch fines")


@router.get("/payments", response_model=List[PaymentRead])
def list_payments(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return [PaymentRead.model_validate(p) for p in storage.list_user_payments(session, current_user.id)]
    except Exception as e:
        logger.error(f"❌ Error fetching payments: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch payments")


@router.put("/profile", response_model=UserRead)
def update_profile(
    data: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """
    Let the caller edit their own name and email.
    """
    try:
        user = storage.update_user(session, current_user.id, data.model_dump(exclude_unset=True))
        return UserRead.model_validate(user)
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=400, detail="Email already in use")
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Error updating profile: {e}")
        raise HTTPException(status_code=500, detail="Failed to update profile")
