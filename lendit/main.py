"""Lendit – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from lendit.config import get_settings
from lendit.database import Base, SessionLocal, engine
from lendit.errors import (
    ConcurrentVersionConflict,
    InvalidTransitionError,
    LenditError,
    NotFoundError,
    PermissionDeniedError,
    StaleVersionSubmission,
    ValidationError,
)
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from lendit.models import (  # noqa: F401
    User, Listing, Booking, PolicyDocument, AuditLog, VerificationRequest, Review,
)
from lendit.routers import admin, auth, bookings, listings, policies, reviews, verification
from lendit.seed import seed_policies

log = logging.getLogger("uvicorn.error")

settings = get_settings()
app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(policies.router)
app.include_router(listings.router)
app.include_router(bookings.router)
app.include_router(verification.router)
app.include_router(reviews.router)
app.include_router(admin.router)

# Most specific first
_STATUS_BY_ERROR = (
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (StaleVersionSubmission, 409),
    (ConcurrentVersionConflict, 409),
    (InvalidTransitionError, 400),
    (ValidationError, 400),
)


@app.exception_handler(LenditError)
def handle_domain_error(request: Request, exc: LenditError):
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 400)
    content = {"detail": exc.message}
    if isinstance(exc, StaleVersionSubmission):
        content["current_version"] = exc.current_version
        content["provided_version"] = exc.provided_version
    return JSONResponse(status_code=status, content=content)


def _create_schema_and_seed() -> None:
    Base.metadata.create_all(bind=engine)
    if settings.seed_policies_on_startup:
        db = SessionLocal()
        try:
            seed_policies(db)
        finally:
            db.close()


@app.on_event("startup")
def startup():
    try:
        _create_schema_and_seed()
    except SQLAlchemyError as e:
        log.warning("Database startup failed (tables/seed skipped). Check DATABASE_URL and network. Error: %s", e)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.post("/db-setup")
def db_setup():
    """Dev only: create tables and seed policies if DB is now available."""
    try:
        _create_schema_and_seed()
        return {"status": "ok", "message": "Tables created and policies seeded."}
    except SQLAlchemyError as e:
        log.exception("db-setup failed")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": str(e)},
        )
