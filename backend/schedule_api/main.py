import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List

from fastapi import FastAPI, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from alembic import command
from alembic.config import Config

# ── local modules ───────────────────────────────────────────────────
from . import repository
from .auth import get_current_user_id
from .db import dispose_engine, get_database_url, get_db
from .errors import ScheduleError
from .schemas import (
    ErrorEnvelope,
    EventIn,
    EventOut,
    SuccessEnvelope,
    to_wire,
    validation_error_from,
)
# ────────────────────────────────────────────────────────────────────

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
log = logging.getLogger(__name__)

# ───────────────────────── DB migrations (optional) ─────────────────
def run_migrations() -> None:
    app_dir = Path(__file__).resolve().parent
    cfg = Config(str(app_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(app_dir / "migrations"))
    # configparser interpolation treats "%" specially
    cfg.set_main_option("sqlalchemy.url", get_database_url().replace("%", "%%"))
    cfg.attributes["configure_logger"] = False
    command.upgrade(cfg, "head")

@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("AUTO_MIGRATE") == "1":
        log.info("AUTO_MIGRATE=1, upgrading database schema")
        run_migrations()
    yield
    dispose_engine()

app = FastAPI(title="Schedule API", lifespan=lifespan)

# ───────────────────────── CORS ─────────────────────────────────────
def _clean(s: str | None) -> str | None:
    return s.strip().rstrip("/") if s and s.strip() else None

FRONTEND_ORIGIN = _clean(os.getenv("FRONTEND_ORIGIN")) or "http://localhost:3000"
_raw_extra = os.getenv("EXTRA_CORS_ORIGINS", "")
EXTRA = [x for x in (_clean(p) for p in _raw_extra.split(",")) if x]
allow_origins = ["*"] if "*" in EXTRA else [o for o in {FRONTEND_ORIGIN, *EXTRA} if o]

# The session cookie has to travel with API calls, so credentials are allowed.
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)

# ───────────────────────── Error envelopes ──────────────────────────
def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorEnvelope(error=message).model_dump())

@app.exception_handler(ScheduleError)
async def schedule_error_handler(request: Request, exc: ScheduleError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = validation_error_from(exc.errors())
    log.info("Rejected %s %s: %s (%s)", request.method, request.url.path, err.message, err.kind)
    return _error_response(err.status_code, err.message)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

# ───────────────────────── Lifecycle & health ───────────────────────
@app.get("/health")
def health_check():
    return {"status": "ok"}

@app.get("/dbcheck")
def dbcheck(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"db": "ok"}

# ───────────────────────── Event CRUD ───────────────────────────────
# The user id dependency comes first so unauthenticated calls never open a session.

@app.get(
    "/api/events",
    response_model=SuccessEnvelope[List[EventOut]],
    response_model_exclude_none=True,
)
def list_events(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    rows = repository.list_events(db, user_id)
    return SuccessEnvelope[List[EventOut]](data=[to_wire(ev) for ev in rows])

@app.get(
    "/api/events/{event_id}",
    response_model=SuccessEnvelope[EventOut],
    response_model_exclude_none=True,
)
def get_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    ev = repository.get_event(db, user_id, event_id)
    return SuccessEnvelope[EventOut](data=to_wire(ev))

@app.post(
    "/api/events",
    response_model=SuccessEnvelope[EventOut],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_event(
    payload: EventIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    ev = repository.create_event(db, user_id, payload)
    return SuccessEnvelope[EventOut](data=to_wire(ev))

@app.put(
    "/api/events/{event_id}",
    response_model=SuccessEnvelope[EventOut],
    response_model_exclude_none=True,
)
def update_event(
    event_id: str,
    payload: EventIn,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    ev = repository.update_event(db, user_id, event_id, payload)
    return SuccessEnvelope[EventOut](data=to_wire(ev))

@app.delete(
    "/api/events/{event_id}",
    response_model=SuccessEnvelope[EventOut],
    response_model_exclude_none=True,
)
def delete_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    ev = repository.delete_event(db, user_id, event_id)
    return SuccessEnvelope[EventOut](data=to_wire(ev))
