import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from utils.datetime_helpers import round_half_up

logger = logging.getLogger(__name__)


class MerakiError(Exception):
    """Base class for errors that are reported back to the user as-is."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed."

    def __init__(self, message: Optional[str] = None, details: Optional[dict] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


# --- Clock-in / clock-out ---


class MissingLocation(MerakiError):
    default_message = "GPS location (latitude and longitude) is required to clock in or out."


class NoFacilitiesAvailable(MerakiError):
    default_message = "No Meraki work location is available for location verification."


class LocationOutOfRange(MerakiError):
    def __init__(self, distance_meters: float, required_radius: float, facility_name: str):
        self.distance_meters = distance_meters
        self.required_radius = required_radius
        self.facility_name = facility_name
        whole_meters = int(round_half_up(distance_meters))
        super().__init__(
            f"Invalid location. You need to be within {required_radius:g}m of the work location. "
            f"Current distance: {whole_meters}m from {facility_name}",
            details={
                "distance": whole_meters,
                "required_distance": required_radius,
                "facility_name": facility_name,
            },
        )


class DuplicateClockIn(MerakiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "You have already clocked in today and have not clocked out yet."


class NoOpenClockIn(MerakiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No open clock-in record was found for today."


# --- Session check-in ---


class IncompleteTimes(MerakiError):
    default_message = "Both start and end times are required."


class InvalidTimeRange(MerakiError):
    default_message = "End time must be after start time."


class TeacherNotCheckedInYet(MerakiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Teacher must check in first before staff can confirm times."


class CheckinAlreadyConfirmed(MerakiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Check-in has already been confirmed by staff."


class ConcurrentModification(MerakiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The record was changed by another request. Reload and try again."


class NotFound(MerakiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found."


def error_body(message: str, data: Any = None) -> dict:
    return {"success": False, "message": message, "data": data}


async def meraki_error_handler(request: Request, exc: MerakiError) -> JSONResponse:
    logger.info(
        "%s %s rejected with %s: %s",
        request.method,
        request.url.path,
        type(exc).__name__,
        exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MerakiError, meraki_error_handler)
