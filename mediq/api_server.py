"""FastAPI server for the clinic queue.

Features:
- Booking, lookup, dashboard listing and status workflow endpoints
- Server-Sent Events stream of booking/status events
- WhatsApp status messages through Twilio
- Error taxonomy mapped to HTTP status codes with a retryable flag
- Structured logging with X-Request-ID on every response
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from mediq import __version__, config
from mediq.api.dependencies import (
    ClinicServices,
    get_booking_service,
    get_lifecycle,
    get_queries,
    get_services,
    get_store,
)
from mediq.api.models import (
    AppointmentListResponse,
    AppointmentOut,
    BookingRequest,
    BookingResponse,
    ErrorResponse,
    QueueStatsOut,
    StatusUpdateRequest,
    StatusUpdateResponse,
    WhatsAppRequest,
    WhatsAppResponse,
)
from mediq.api.streaming import stream_appointment_events
from mediq.booking import BookingService
from mediq.errors import (
    AppointmentNotFound,
    ConflictError,
    DeliveryError,
    IllegalTransition,
    MediQError,
    StoreUnavailable,
    ValidationError,
)
from mediq.lifecycle import LifecycleStateMachine
from mediq.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from mediq.messaging import render_status_message
from mediq.queries import QueryAggregator
from mediq.store import AppointmentStore

setup_structured_logging(config.LOG_LEVEL, json_logs=config.LOG_JSON)
logger = get_logger(__name__)

GENERIC_RETRY_MESSAGE = "The clinic queue is busy. Please try again in a moment."


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    logger.info("server_starting", version=__version__)

    services = get_services()
    logger.info(
        "services_ready",
        messaging_enabled=services.channel is not None,
        strict_status_filter=services.queries.strict_status,
    )

    yield

    services.close()
    get_services.cache_clear()
    logger.info("server_stopped")


app = FastAPI(
    title="MediQ Clinic Queue API",
    description="Slot-based appointment queue with staff status workflow",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)


def _error(status_code: int, error: str, detail: str, code: str, retryable: bool = False, headers=None):
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, code=code, retryable=retryable).model_dump(),
        headers=headers,
    )


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("request_validation_failed", errors=str(exc.errors()))
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation Error",
        str(exc.errors()),
        "VALIDATION_ERROR",
    )


@app.exception_handler(MediQError)
async def queue_error_handler(request: Request, exc: MediQError):
    """Map the queue engine's error taxonomy onto HTTP responses."""
    if isinstance(exc, ValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Validation Error", exc.message, "VALIDATION_ERROR")

    if isinstance(exc, AppointmentNotFound):
        return _error(status.HTTP_404_NOT_FOUND, "Appointment Not Found", exc.message, "NOT_FOUND")

    if isinstance(exc, IllegalTransition):
        return _error(status.HTTP_409_CONFLICT, "Illegal Transition", exc.message, "ILLEGAL_TRANSITION")

    if isinstance(exc, ConflictError):
        logger.warning("conflict_surfaced", detail=exc.message)
        return _error(status.HTTP_409_CONFLICT, "Conflict", GENERIC_RETRY_MESSAGE, "CONFLICT", retryable=True)

    if isinstance(exc, StoreUnavailable):
        logger.error("store_unavailable", detail=exc.message, exc_info=exc)
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Service Unavailable",
            GENERIC_RETRY_MESSAGE,
            "STORE_UNAVAILABLE",
            retryable=True,
            headers={"Retry-After": "5"},
        )

    if isinstance(exc, DeliveryError):
        return _error(status.HTTP_502_BAD_GATEWAY, "Delivery Failed", exc.message, "DELIVERY_FAILED", retryable=True)

    logger.error("unmapped_queue_error", error_type=type(exc).__name__, detail=exc.message)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_ERROR",
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", exc_info=exc)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_ERROR",
    )


@app.get("/health", tags=["Health"])
def health_check(store: AppointmentStore = Depends(get_store)):
    """Health check endpoint for load balancers (pings the database)."""
    store.ping()
    return {
        "status": "healthy",
        "service": "mediq-api",
        "version": __version__
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API info."""
    return {
        "message": "Welcome to the MediQ Backend!",
        "docs": "/docs",
        "health": "/health"
    }


@app.post("/book", tags=["Appointments"], response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(request: BookingRequest, booking: BookingService = Depends(get_booking_service)):
    """
    Book a place in the queue for the requested time's slot.

    Raises:
        400: Domain validation failed (phone digits, blank fields)
        409: Queue allocation kept colliding (retry is safe)
        422: Schema validation failed
        503: Store unavailable (retry is safe)
    """
    appointment = booking.book(
        patient_name=request.patient_name,
        phone_number=request.phone_number,
        appointment_time=request.appointment_time,
        service_type=request.service_type,
        notes=request.notes,
    )

    return BookingResponse(
        id=appointment.id,
        queue_number=appointment.queue_number,
        slot_name=appointment.slot_name,
        slot_start=appointment.slot_start,
    )


@app.get("/appointment/{appointment_id}", tags=["Appointments"], response_model=AppointmentOut)
def get_appointment(appointment_id: str, store: AppointmentStore = Depends(get_store)):
    """Get one appointment (patients poll this for their queue status)."""
    return AppointmentOut.model_validate(store.get_by_id(appointment_id))


@app.get("/appointments", tags=["Dashboard"], response_model=AppointmentListResponse)
def list_appointments(
    status_filter: str | None = Query(None, alias="status"),
    search: str | None = None,
    queries: QueryAggregator = Depends(get_queries),
):
    """
    List appointments with stats over the same filtered set.

    Query params:
        status: pending, in_progress, completed, cancelled or all
        search: name/phone substring or exact queue number
    """
    listing = queries.list(status=status_filter, search=search)
    return AppointmentListResponse(
        appointments=[AppointmentOut.model_validate(a) for a in listing.appointments],
        stats=QueueStatsOut.model_validate(listing.stats),
    )


@app.get("/appointments/events", tags=["Dashboard"])
async def appointment_events(services: ClinicServices = Depends(get_services)):
    """
    Server-Sent Events stream of booking and status events.

    Response Format:
        data: {"type": "status_changed", "id": "...", "oldStatus": "pending", ...}
    """
    return StreamingResponse(
        stream_appointment_events(services.notifier),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )


@app.patch("/appointment/{appointment_id}/status", tags=["Appointments"], response_model=StatusUpdateResponse)
def update_status(
    appointment_id: str,
    request: StatusUpdateRequest,
    lifecycle: LifecycleStateMachine = Depends(get_lifecycle),
):
    """
    Move an appointment through its lifecycle.

    Raises:
        400: Unknown status
        404: Appointment not found
        409: Transition not allowed from the current status
    """
    appointment = lifecycle.apply_transition(appointment_id, request.status)
    return StatusUpdateResponse(
        message=f"Status updated to {appointment.status.value}",
        appointment=AppointmentOut.model_validate(appointment),
    )


@app.post("/send-whatsapp", tags=["Messaging"], response_model=WhatsAppResponse)
def send_whatsapp(request: WhatsAppRequest, services: ClinicServices = Depends(get_services)):
    """Send a status message to a patient over WhatsApp."""
    if services.channel is None:
        return _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Messaging Disabled",
            "WhatsApp messaging is not configured on this server",
            "MESSAGING_DISABLED",
        )

    receipt = services.channel.send(
        request.phone_number,
        render_status_message(request.patient_name, request.status),
    )
    return WhatsAppResponse(sid=receipt.sid)
