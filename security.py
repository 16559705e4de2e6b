# =============================================================
# 🔐 SECURITY — Session tokens & access checks (LibraryFlow)
# =============================================================
import logging
from datetime import datetime

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlmodel import Session

import storage
from config import Settings, get_settings
from database import get_session
from models import ROLE_ADMIN, User, UserSession

logger = logging.getLogger("uvicorn")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def _unauthorized(message: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_session_token(record: UserSession, settings: Settings) -> str:
    to_encode = {"sub": record.user_id, "sid": record.sid, "exp": record.expire}
    return jwt.encode(to_encode, settings.session_secret, algorithm=settings.session_algorithm)


def decode_session_token(token: str, settings: Settings, verify_exp: bool = True) -> dict:
    return jwt.decode(
        token,
        settings.session_secret,
        algorithms=[settings.session_algorithm],
        options={"verify_exp": verify_exp},
    )


def get_current_session(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> UserSession:
    if not token:
        raise _unauthorized()
    try:
        payload = decode_session_token(token, settings)
    except ExpiredSignatureError:
        raise _unauthorized("Session expired")
    except JWTError:
        raise _unauthorized()

    sid = payload.get("sid")
    record = storage.get_user_session(session, sid) if sid else None
    if record is None:
        raise _unauthorized()
    if datetime.utcnow() > record.expire:
        raise _unauthorized("Session expired")
    return record


def get_current_user(
    record: UserSession = Depends(get_current_session),
    session: Session = Depends(get_session),
) -> User:
    user = storage.get_user(session, record.user_id)
    if user is None:
        raise _unauthorized()
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
