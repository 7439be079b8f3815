# booking_engine/main.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from booking_engine.api.v1.api import api_router
from booking_engine.core.config import settings
from booking_engine.core.exceptions import (
    BookingError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    WrongPartyError,
)
from booking_engine.core.kafka_producer import close_kafka_singleton
from booking_engine.db.base_class import Base
from booking_engine.db.session import engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    WrongPartyError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Booking engine starting up...")
    if settings.ENV == "local":
        import booking_engine.models  # noqa: F401  registers every table on Base

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables checked and created if necessary.")

    if settings.SCHEDULER_ENABLED:
        from booking_engine.scheduler import init_scheduler
        init_scheduler()

    yield

    logger.info("Booking engine shutting down...")
    if settings.SCHEDULER_ENABLED:
        from booking_engine.scheduler import shutdown_scheduler
        shutdown_scheduler()
    close_kafka_singleton()


app = FastAPI(
    title="Booking Engine Microservice",
    version="1.0.0",
    description="""
        **Booking lifecycle engine**

        Two-party negotiation of live-event bookings between an organizer
        (sender) and a performer (receiver).

        ## Features

        * **Requests**: Send, accept or reject booking requests
        * **Negotiation**: Field-level change proposals with stale-value detection
        * **Approval**: Independent approvals from both parties
        * **Publication**: Allow-listed public listing of agreed bookings

        ## Authentication

        Party endpoints require JWT authentication via the `Authorization: Bearer <token>` header.
        Endpoints under `/public/` are accessible without authentication.
        """,
    lifespan=lifespan,
)

origins = [
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    body = {"code": exc.code, "detail": exc.message}
    if isinstance(exc, InvalidStateError) and exc.current_status:
        body["current_status"] = exc.current_status
    if isinstance(exc, (ConflictError, ValidationError)) and exc.field_name:
        body["field_name"] = exc.field_name
    if isinstance(exc, ConflictError):
        body["current_value"] = exc.current_value
    return JSONResponse(status_code=status_code, content=body)


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Booking Engine Service is running"}
