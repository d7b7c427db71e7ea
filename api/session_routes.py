import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from core.deps import get_current_user, has_role, require_admin_role, require_teacher_role
from core.errors import InvalidTimeRange, MerakiError
from db.session import get_session
from models.teaching_session import (
    CheckinTimesRequest,
    TeachingSession,
    TeachingSessionCreate,
    TeachingSessionRead,
)
from services.checkin_service import CheckinService, read_checkin
from utils.timezone_helpers import ensure_timezone_aware

logger = logging.getLogger(__name__)

router = APIRouter()


def _envelope(teaching_session: TeachingSession, message: str) -> dict:
    return {
        "success": True,
        "data": TeachingSessionRead.model_validate(teaching_session, from_attributes=True),
        "message": message,
    }


def _run(operation, *args, session: Session, **kwargs):
    # Domain errors carry their own status; anything else is an opaque 500
    try:
        return operation(*args, session=session, **kwargs)
    except MerakiError:
        raise
    except Exception as e:
        session.rollback()
        logger.exception("Error saving check-in: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not save check-in.",
        )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_session(
    payload: TeachingSessionCreate,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    if ensure_timezone_aware(payload.end_time) <= ensure_timezone_aware(payload.start_time):
        raise InvalidTimeRange()

    teaching_session = TeachingSession(**payload.model_dump())
    session.add(teaching_session)
    session.commit()
    session.refresh(teaching_session)

    logger.info("Admin %s created session %s", admin_user.get("email"), teaching_session.id)
    return _envelope(teaching_session, "Session created")


@router.get("/{session_id}")
def get_session_detail(
    session_id: str,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[dict, Depends(get_current_user)],
):
    teaching_session = CheckinService.get_session_or_404(session_id, session)
    return _envelope(teaching_session, "Session loaded")


@router.get("/{session_id}/checkin")
def get_session_checkin(
    session_id: str,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[dict, Depends(get_current_user)],
):
    teaching_session = CheckinService.get_session_or_404(session_id, session)
    return {
        "success": True,
        "data": read_checkin(teaching_session),
        "version": teaching_session.version,
        "message": "Check-in loaded",
    }


@router.post("/{session_id}/teacher-checkin")
def teacher_checkin(
    session_id: str,
    payload: CheckinTimesRequest,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[dict, Depends(require_teacher_role)],
):
    teaching_session = CheckinService.get_session_or_404(session_id, session)
    # Teachers check in their own sessions only
    if (
        not has_role(user.get("role", ""), "admin")
        and teaching_session.teacher_id
        and teaching_session.teacher_id != user.get("employee_id")
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the assigned teacher can check in this session.",
        )

    updated = _run(
        CheckinService.submit_teacher_times,
        session_id,
        payload.start_time,
        payload.end_time,
        session=session,
        expected_version=payload.expected_version,
    )
    return _envelope(updated, "Teacher check-in successful!")


@router.post("/{session_id}/staff-confirm")
def staff_confirm(
    session_id: str,
    payload: CheckinTimesRequest,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    updated = _run(
        CheckinService.confirm_staff_times,
        session_id,
        payload.start_time,
        payload.end_time,
        session=session,
        expected_version=payload.expected_version,
    )

    checkin = read_checkin(updated)
    if checkin.times_match:
        message = (
            f"Staff confirmation successful! Times match. Teaching duration: "
            f"{checkin.teaching_duration_hours} hours ({checkin.teaching_duration_minutes} minutes)"
        )
    else:
        message = (
            f"Staff confirmation successful! Times differ - staff times used as final. "
            f"Teaching duration: {checkin.teaching_duration_hours} hours "
            f"({checkin.teaching_duration_minutes} minutes)"
        )
    return _envelope(updated, message)
