from __future__ import annotations
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import time
import logging
from typing import Optional

from config import Settings, get_settings
from database import build_engine, init_db_with_retry, ping, seed_catalog
from gateway import build_gateway
from identity import build_identity
from routes import account, admin, auth, books, payments, reservations

# ----------------------------------------------------------------------
# LOGGING
# ----------------------------------------------------------------------
logger = logging.getLogger("uvicorn")
logger.setLevel(logging.INFO)

SERVICE_NAME = "LibraryFlow API"


def _validation_message(path: str) -> str:
    if path.startswith("/api/books"):
        return "Invalid book data"
    if path.startswith("/api/reservations"):
        return "Invalid reservation data"
    if path.startswith("/api/create-payment-intent") or path.startswith("/api/payment"):
        return "Invalid payment data"
    return "Invalid request data"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    # ------------------------------------------------------------------
    # FASTAPI INITIALISATION
    # ------------------------------------------------------------------
    app = FastAPI(
        title=SERVICE_NAME,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.identity = build_identity(settings)
    app.state.gateway = build_gateway(settings)

    # ------------------------------------------------------------------
    # CORS CONFIGURATION
    # ------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5000",
            *settings.cors_origins,
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # REQUEST LOGGING
    # ------------------------------------------------------------------
    @app.middleware("http")
    async def log_api_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.info(f"{request.method} {request.url.path} {response.status_code} in {duration_ms}ms")
        return response

    # ------------------------------------------------------------------
    # ERROR BODIES
    # ------------------------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"message": _validation_message(request.url.path), "errors": errors},
        )

    # ------------------------------------------------------------------
    # STARTUP
    # ------------------------------------------------------------------
    @app.on_event("startup")
    def on_startup():
        ready = init_db_with_retry(app.state.engine)
        if ready and settings.mock_data:
            seed_catalog(app.state.engine)
        logger.info(f"🔑 Auth mode: {settings.auth_mode}")
        if settings.payments_enabled:
            logger.info("💳 Stripe payment processing enabled")
        else:
            logger.info("💳 Stripe not configured - payment features disabled")

    # ------------------------------------------------------------------
    # MAIN ROUTES
    # ------------------------------------------------------------------
    @app.get("/")
    def root():
        return {"ok": True, "service": SERVICE_NAME}

    @app.get("/health")
    def health(request: Request, current: Settings = Depends(get_settings)):
        return {
            "status": "ok",
            "database": ping(request.app.state.engine),
            "mockData": current.mock_data,
        }

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    for module in (auth, books, reservations, account, admin, payments):
        app.include_router(module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
