# =============================================================
# 📚 ROUTES BOOKS — Catalog browsing & admin CRUD (LibraryFlow)
# =============================================================
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

import storage
from database import get_session
from models import User
from schemas import BookCreate, BookRead, BookUpdate
from security import require_admin

logger = logging.getLogger("uvicorn")

router = APIRouter(prefix="/api/books", tags=["Books"])


# -------------------------------------------------------------
# 🔎 BROWSING
# -------------------------------------------------------------
@router.get("", response_model=List[BookRead])
def list_books(
    search: str = "",
    genre: Optional[str] = None,
    author: Optional[str] = None,
    availability: Optional[Literal["available", "unavailable"]] = None,
    year_from: Optional[int] = Query(default=None, alias="yearFrom"),
    year_to: Optional[int] = Query(default=None, alias="yearTo"),
    session: Session = Depends(get_session),
):
    """
    Search the catalog by title / author / ISBN, with optional filters.
    """
    try:
        books = storage.search_books(
            session,
            search,
            genre=genre,
            author=author,
            availability=availability,
            year_from=year_from,
            year_to=year_to,
        )
        return [BookRead.model_validate(b) for b in books]
    except Exception as e:
        logger.error(f"❌ Error fetching books: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch books")


@router.get("/{book_id}", response_model=BookRead)
def get_book(book_id: int, session: Session = Depends(get_session)):
    try:
        book = storage.get_book(session, book_id)
    except Exception as e:
        logger.error(f"❌ Error fetching book {book_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch book")
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return BookRead.model_validate(book)


# -------------------------------------------------------------
# 🛠️ ADMIN CRUD
# -------------------------------------------------------------
@router.post("", response_model=BookRead, status_code=201)
def create_book(
    data: BookCreate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    try:
        book = storage.create_book(session, data.model_dump())
        logger.info(f"📗 Book {book.id} created by {admin.id}")
        return BookRead.model_validate(book)
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=400, detail="A book with this ISBN already exists")
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Error creating book: {e}")
        raise HTTPException(status_code=500, detail="Failed to create book")


@router.put("/{book_id}", response_model=BookRead)
def update_book(
    book_id: int,
    data: BookUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    try:
        book = storage.update_book(session, book_id, data.model_dump(exclude_unset=True))
        return BookRead.model_validate(book)
    except LookupError:
        raise HTTPException(status_code=404, detail="Book not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=400, detail="A book with this ISBN already exists")
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Error updating book {book_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update book")


@router.delete("/{book_id}", status_code=204)
def delete_book(
    book_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    try:
        storage.delete_book(session, book_id)
        logger.info(f"🗑️ Book {book_id} deleted by {admin.id}")
    except LookupError:
        raise HTTPException(status_code=404, detail="Book not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Error deleting book {book_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete book")
    return Response(status_code=204)
