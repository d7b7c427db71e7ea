import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlmodel import Session

from core.deps import get_current_user, has_role
from core.errors import MerakiError
from db.session import get_session
from models.clock_record import (
    ClockEventRequest,
    ClockLocationRequest,
    ClockRecordQuery,
    ClockStatus,
    ClockType,
)
from services.clock_service import ClockService

logger = logging.getLogger(__name__)

# Defines API Endpoints
router = APIRouter()


def _ensure_can_clock_for(employee_id: str, user: dict) -> None:
    # Employees clock for themselves; admins may clock on someone's behalf
    if employee_id != user.get("employee_id") and not has_role(user.get("role", ""), "admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only clock in or out for yourself.",
        )


def _record(payload: ClockEventRequest, session: Session) -> dict:
    try:
        return ClockService.record_clock_event(payload, session)
    except MerakiError:
        raise
    except Exception as e:
        session.rollback()
        logger.exception("Error processing %s for %s: %s", payload.type.value, payload.employee_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not process clock event.",
        )


# Clock In / Out Endpoint, type taken from the body
@router.post("/clock", status_code=status.HTTP_200_OK)
def clock(
    payload: ClockEventRequest,
    response: Response,
    session: Session = Depends(get_session),
    user: dict = Depends(get_current_user),
):
    _ensure_can_clock_for(payload.employee_id, user)
    result = _record(payload, session)
    if payload.type == ClockType.CLOCK_IN:
        response.status_code = status.HTTP_201_CREATED
    return result


# Clock In Endpoint
@router.post("/clock-in", status_code=status.HTTP_201_CREATED)
def clock_in(
    data: ClockLocationRequest,
    session: Session = Depends(get_session),
    user: dict = Depends(get_current_user),
):
    _ensure_can_clock_for(data.employee_id, user)
    payload = ClockEventRequest(**data.model_dump(), type=ClockType.CLOCK_IN)
    return _record(payload, session)


# Clock Out Endpoint
@router.post("/clock-out")
def clock_out(
    data: ClockLocationRequest,
    session: Session = Depends(get_session),
    user: dict = Depends(get_current_user),
):
    _ensure_can_clock_for(data.employee_id, user)
    payload = ClockEventRequest(**data.model_dump(), type=ClockType.CLOCK_OUT)
    return _record(payload, session)


# List Clock Records
@router.get("/records")
def list_clock_records(
    session: Session = Depends(get_session),
    user: dict = Depends(get_current_user),
    employee_id: Optional[str] = None,
    work_date: Annotated[Optional[date], Query(alias="date")] = None,
    record_status: Annotated[Optional[ClockStatus], Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    # Non-admins only ever see their own records
    if not has_role(user.get("role", ""), "admin"):
        employee_id = user.get("employee_id")

    query = ClockRecordQuery(
        employee_id=employee_id,
        work_date=work_date,
        status=record_status,
        limit=limit,
        offset=offset,
    )
    records = ClockService.list_clock_records(query, session)
    return {
        "success": True,
        "data": records,
        "message": f"Found {len(records)} clock records",
    }
