"""
FastAPI server exposing free-slot search and booking.

Endpoints:
    GET /health:
        - Liveness check, returns {"ok": true}

    GET /free-slots:
        - Parameters: calendarId, tz, duration, limit, range, from, to
        - range is one of week, fortnight, month, custom; from/to are required
          for custom and rejected with the relative ranges
        - Returns the ordered slot list plus the echoed window, tz and duration

    POST /book:
        - Body: calendarId, start, end, tz, summary, description, attendees
        - Creates the calendar event without re-checking availability

When an API secret is configured every endpoint except /health requires a
matching ``x-api-key`` header.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import AppConfig
from ..domain import timeutil
from ..domain.exceptions import (
    AuthenticationError,
    CalendarAPIError,
    InvalidRequestError,
    InvalidWindowError,
)
from ..domain.models import SlotRequest
from ..services.scheduling import BookingRequest, CalendarClientProtocol, SchedulingService
from ..services.windows import resolve_window

logger = logging.getLogger(__name__)


class Unauthorized(Exception):
    """Raised by the API key check."""


class BookRequestBody(BaseModel):
    calendarId: Optional[str] = None
    start: Optional[Union[str, int]] = None
    end: Optional[Union[str, int]] = None
    tz: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    attendees: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)


def _error(status_code: int, message: str, retryable: Optional[bool] = None) -> JSONResponse:
    body: Dict[str, Any] = {"error": message}
    if retryable is not None:
        body["retryable"] = retryable
    return JSONResponse(status_code=status_code, content=body)


def _describe_validation_errors(exc: RequestValidationError) -> str:
    """Flatten FastAPI's error list into one message, e.g. "duration: Input should be a valid integer"."""
    messages = []
    for error in exc.errors():
        # First element of loc is the source ("query", "body")
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        message = error.get("msg", "invalid value")
        messages.append(f"{field}: {message}" if field else message)
    return "; ".join(messages) or "invalid request"


def create_app(
    config: AppConfig,
    calendar_client: CalendarClientProtocol,
    clock: Optional[timeutil.Clock] = None,
) -> FastAPI:
    """
    Build the application around an explicit configuration and calendar client.
    """
    app = FastAPI(title="Slotfinder API")
    now = clock or timeutil.utc_now

    service = SchedulingService(
        calendar_client=calendar_client,
        business_hours=config.build_business_hours(),
        clock=clock,
        lead_minutes=config.defaults.lead_minutes,
    )
    app.state.config = config
    app.state.service = service

    def require_secret(x_api_key: Optional[str] = Header(None)) -> None:
        if config.api_secret and x_api_key != config.api_secret:
            raise Unauthorized()

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return _error(401, "unauthorized")

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError):
        return _error(400, str(exc), retryable=False)

    @app.exception_handler(CalendarAPIError)
    async def calendar_error_handler(request: Request, exc: CalendarAPIError):
        logger.warning("Calendar API failure on %s: %s", request.url.path, exc)
        return _error(502, str(exc), retryable=True)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _error(400, _describe_validation_errors(exc), retryable=False)

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        if exc.retryable:
            logger.warning("Token endpoint unavailable on %s: %s", request.url.path, exc)
            return _error(502, str(exc), retryable=True)
        logger.error("Calendar authentication failed: %s", exc)
        return _error(500, str(exc), retryable=False)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, str(exc) or "internal error")

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/free-slots", dependencies=[Depends(require_secret)])
    def free_slots(
        calendar_id: Optional[str] = Query(None, alias="calendarId"),
        tz: Optional[str] = Query(None),
        duration: int = Query(config.defaults.duration_minutes),
        limit: int = Query(config.defaults.limit),
        range_name: Optional[str] = Query(None, alias="range"),
        from_: Optional[str] = Query(None, alias="from"),
        to: Optional[str] = Query(None),
    ):
        timezone = timeutil.ensure_timezone(tz or config.timezone)
        calendar = calendar_id or config.calendar_id

        window, effective_range = resolve_window(
            range_name,
            timezone,
            start=from_,
            end=to,
            now=now(),
            default_range=config.defaults.range,
        )

        request = SlotRequest(
            window=window,
            timezone=timezone,
            duration_minutes=duration,
            max_slots=min(limit, config.defaults.max_limit),
        )

        logger.info(
            "Searching %s slots of %d min for %s in %s",
            effective_range, duration, calendar, timezone,
        )

        result = service.find_free_slots(request, calendar, range_name=effective_range)
        return result.to_dict()

    @app.post("/book", dependencies=[Depends(require_secret)])
    def book(body: BookRequestBody):
        if body.start is None or body.end is None:
            raise InvalidWindowError("calendarId, start, end are required")

        booking = BookingRequest(
            calendar_id=body.calendarId or config.calendar_id or "",
            start=timeutil.parse_instant(body.start),
            end=timeutil.parse_instant(body.end),
            timezone=body.tz or config.timezone,
            summary=body.summary or config.defaults.summary,
            description=body.description if body.description is not None else config.defaults.description,
            attendees=BookingRequest.normalize_attendees(body.attendees),
        )

        logger.info("Booking %s - %s on %s", booking.start, booking.end, booking.calendar_id)

        event = service.book_slot(booking)
        return {"ok": True, "event": event}

    return app
