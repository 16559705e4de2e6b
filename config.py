# =============================================================
# ⚙️ CONFIG — Process-wide settings (LibraryFlow)
# =============================================================
import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Request

logger = logging.getLogger("uvicorn")

SQLITE_FALLBACK_URL = "sqlite:///libraryflow.db"


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes")


def _csv(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg2://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


@dataclass
class Settings:
    """Startup configuration, injected into the app instead of read ad hoc."""

    # Database
    database_url: str = SQLITE_FALLBACK_URL
    mock_data: bool = True

    # Sessions
    session_secret: str = field(default_factory=lambda: os.urandom(48).hex())
    session_ttl_days: int = 7
    session_algorithm: str = "HS256"

    # Identity provider (OIDC); demo mode when unset
    oidc_issuer_url: Optional[str] = None
    oidc_client_id: Optional[str] = None
    admin_emails: List[str] = field(default_factory=list)

    # Payments
    stripe_secret_key: Optional[str] = None
    currency: str = "usd"

    # Lending rules
    loan_period_days: int = 14
    due_soon_days: int = 3

    # HTTP
    cors_origins: List[str] = field(default_factory=list)
    port: int = 5000

    @property
    def auth_mode(self) -> str:
        if self.oidc_issuer_url and self.oidc_client_id:
            return "oidc"
        return "demo"

    @property
    def payments_enabled(self) -> bool:
        return bool(self.stripe_secret_key)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        raw_db_url = (os.getenv("DATABASE_URL") or "").strip()
        mock_data = _flag("USE_MOCK_DATA") or not raw_db_url
        if not raw_db_url:
            logger.warning("⚠️ DATABASE_URL missing — using local SQLite with mock data.")

        secret = os.getenv("SESSION_SECRET")
        if not secret:
            secret = os.urandom(48).hex()
            logger.warning("⚠️ SESSION_SECRET missing — using temporary key.")

        return cls(
            database_url=normalize_database_url(raw_db_url) if raw_db_url else SQLITE_FALLBACK_URL,
            mock_data=mock_data,
            session_secret=secret,
            session_ttl_days=int(os.getenv("SESSION_TTL_DAYS", "7")),
            oidc_issuer_url=os.getenv("OIDC_ISSUER_URL") or None,
            oidc_client_id=os.getenv("OIDC_CLIENT_ID") or None,
            admin_emails=[e.lower() for e in _csv("ADMIN_EMAILS")],
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            loan_period_days=int(os.getenv("LOAN_PERIOD_DAYS", "14")),
            due_soon_days=int(os.getenv("DUE_SOON_DAYS", "3")),
            cors_origins=_csv("CORS_ORIGINS"),
            port=int(os.getenv("PORT", "5000")),
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
