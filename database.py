# =============================================================
# 🗄️ DATABASE — SQLModel engine & sessions (LibraryFlow)
# =============================================================
import time
import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from config import Settings
from models import Book

logger = logging.getLogger("uvicorn")

ENGINE_KW = {"pool_pre_ping": True, "pool_recycle": 1800}


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        return create_engine(
            url, connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, **ENGINE_KW)
    return create_engine(url, connect_args={"sslmode": "require"}, **ENGINE_KW)


def init_db_with_retry(engine: Engine, max_attempts: int = 12, delay_sec: int = 5) -> bool:
    """Try several connections before creating the tables."""
    for attempt in range(1, max_attempts + 1):
        try:
            with engine.begin() as conn:
                conn.execute(text("SELECT 1"))
                SQLModel.metadata.create_all(bind=conn)
            logger.info(f"✅ Database ready (attempt {attempt}/{max_attempts}).")
            return True
        except Exception as e:
            logger.warning(f"⚠️ DB not ready (attempt {attempt}/{max_attempts}): {e}")
            if attempt < max_attempts:
                time.sleep(delay_sec)
    logger.error(f"❌ Database still unreachable after {max_attempts} attempts.")
    return False


def ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"⚠️ Health check could not reach the database: {e}")
        return False


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session


# -------------------------------------------------------------
# 🎭 Mock data mode
# -------------------------------------------------------------
DEMO_CATALOG = [
    dict(title="The Great Gatsby", author="F. Scott Fitzgerald", isbn="9780743273565",
         genre="Fiction", publication_year=1925, total_copies=3),
    dict(title="To Kill a Mockingbird", author="Harper Lee", isbn="9780061120084",
         genre="Fiction", publication_year=1960, total_copies=2),
    dict(title="1984", author="George Orwell", isbn="9780451524935",
         genre="Science Fiction", publication_year=1949, total_copies=4),
    dict(title="A Brief History of Time", author="Stephen Hawking", isbn="9780553380163",
         genre="Science", publication_year=1988, total_copies=2),
    dict(title="Sapiens", author="Yuval Noah Harari", isbn="9780062316097",
         genre="History", publication_year=2011, total_copies=3),
    dict(title="Clean Code", author="Robert C. Martin", isbn="9780132350884",
         genre="Technology", publication_year=2008, total_copies=1),
]


def seed_catalog(engine: Engine) -> int:
    """Fill an empty catalog with demo books. Returns the number inserted."""
    with Session(engine) as session:
        if session.exec(select(Book)).first() is not None:
            return 0
        for entry in DEMO_CATALOG:
            session.add(Book(available_copies=entry["total_copies"], **entry))
        session.commit()
    logger.info(f"📚 Seeded {len(DEMO_CATALOG)} demo books.")
    return len(DEMO_CATALOG)
