import logging
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Depends, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from sqlalchemy.orm import Session
from ticket_classifier.api.deps import check_security_bypass
from ticket_classifier.api.jobs import router as jobs_router
from ticket_classifier.api.tickets import router as tickets_router
from ticket_classifier.core.config import settings
from ticket_classifier.core.db import get_db, init_db
from ticket_classifier.core.errors import (
    AppError,
    ConflictError,
    InternalError,
    NotFoundError,
    StateError,
    ValidationError,
)
from ticket_classifier.core.log_config import setup_logging

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    check_security_bypass()
    init_db()
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Batch ticket classification jobs with replay-protected submissions.",
    version="1.0.0",
    lifespan=lifespan,
)

@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response

def _request_id(request: Request):
    return getattr(request.state, "request_id", None)

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    content = {"detail": str(exc), "request_id": _request_id(request)}

    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    elif isinstance(exc, StateError):
        content["current_state"] = exc.current_state
        content["attempted_state"] = exc.attempted_state
    elif status_code >= 500:
        logger.error("Internal error on %s %s [%s]: %r", request.method, request.url.path, _request_id(request), exc,
                     exc_info=exc.__cause__ or exc)
        if settings.ENVIRONMENT == "production":
            content["detail"] = "Internal Server Error"

    return JSONResponse(status_code=status_code, content=content)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body") or "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Request validation failed", "errors": errors, "request_id": _request_id(request)},
    )

@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service Unavailable: Database connection or operational failure", "request_id": _request_id(request)},
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error", "request_id": _request_id(request)},
    )

@app.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        db_status = "error"
    return {"status": "ok", "database": db_status}

app.include_router(jobs_router)
app.include_router(tickets_router)
