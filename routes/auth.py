# =============================================================
# 🔑 ROUTES AUTH — Login, logout, current user (LibraryFlow)
# =============================================================
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from jose import JWTError
from sqlmodel import Session

import storage
from config import Settings, get_settings
from database import get_session
from identity import IdentityError, IdentityProviderUnavailable, get_identity
from models import User
from schemas import AuthConfig, LoginRequest, LoginResponse, StatusMessage, UserRead
from security import create_session_token, decode_session_token, get_current_user, oauth2_scheme

logger = logging.getLogger("uvicorn")

router = APIRouter(prefix="/api", tags=["Auth"])


# -------------------------------------------------------------
# 🚪 LOGIN / LOGOUT
# -------------------------------------------------------------
@router.post("/login", response_model=LoginResponse)
def login(
    payload: Optional[LoginRequest] = None,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    identity=Depends(get_identity),
):
    """
    Resolve the caller's identity (OIDC id token or the demo user) and open a session.
    """
    try:
        claims = identity.resolve(payload.id_token if payload else None)
    except IdentityError as e:
        logger.warning(f"⚠️ Rejected login: {e}")
        raise HTTPException(status_code=401, detail="Invalid identity token")
    except IdentityProviderUnavailable:
        raise HTTPException(status_code=503, detail="Identity provider unavailable")

    try:
        user = storage.upsert_user(session, claims, settings.admin_emails)
        record = storage.create_user_session(session, user, timedelta(days=settings.session_ttl_days))
        token = create_session_token(record, settings)
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Login error: {e}")
        raise HTTPException(status_code=500, detail="Login failed")

    message = "Logged in as demo user" if identity.mode == "demo" else "Logged in"
    return LoginResponse(
        message=message,
        token=token,
        expires_at=record.expire,
        user=UserRead.model_validate(user),
    )


@router.get("/logout", response_model=StatusMessage)
def logout(
    token: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """
    Drop the caller's session. Always succeeds, even without a session.
    """
    if token:
        try:
            sid = decode_session_token(token, settings, verify_exp=False).get("sid")
        except JWTError:
            sid = None
        if sid:
            try:
                storage.delete_user_session(session, sid)
            except Exception as e:
                session.rollback()
                logger.error(f"❌ Logout error: {e}")
                raise HTTPException(status_code=500, detail="Logout failed")
    return StatusMessage(message="Logged out")


# -------------------------------------------------------------
# 👤 CURRENT USER
# -------------------------------------------------------------
@router.get("/auth/user", response_model=UserRead)
def auth_user(current_user: User = Depends(get_current_user)):
    return UserRead.model_validate(current_user)


@router.get("/auth/config", response_model=AuthConfig)
def auth_config(settings: Settings = Depends(get_settings)):
    return AuthConfig(
        auth_mode=settings.auth_mode,
        payments_enabled=settings.payments_enabled,
        mock_data=settings.mock_data,
    )
