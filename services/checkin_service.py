import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from core.config import SCHOOL_TIMEZONE
from core.errors import (
    CheckinAlreadyConfirmed,
    ConcurrentModification,
    IncompleteTimes,
    InvalidTimeRange,
    NotFound,
    TeacherNotCheckedInYet,
)
from models.teaching_session import (
    CHECKIN_KEY,
    FinalTimeSource,
    SessionCheckin,
    TeachingSession,
)
from utils.datetime_helpers import (
    minutes_between,
    normalize_instant,
    parse_utc_datetime,
    round_half_up,
)

logger = logging.getLogger(__name__)


def _validated_range(
    start: Optional[datetime], end: Optional[datetime]
) -> tuple[str, str]:
    """Normalize a reported start/end pair; both are required and end must follow start."""
    if start is None or end is None:
        raise IncompleteTimes()

    start_iso = normalize_instant(start, SCHOOL_TIMEZONE)
    end_iso = normalize_instant(end, SCHOOL_TIMEZONE)
    if parse_utc_datetime(end_iso) <= parse_utc_datetime(start_iso):
        raise InvalidTimeRange()
    return start_iso, end_iso


def teacher_check_in(
    start: Optional[datetime],
    end: Optional[datetime],
    existing: Optional[SessionCheckin] = None,
) -> SessionCheckin:
    """Record the teacher's reported times. Allowed until staff confirms."""
    if existing is not None and existing.staff_confirmed:
        raise CheckinAlreadyConfirmed()

    start_iso, end_iso = _validated_range(start, end)
    extra = existing.model_extra if existing is not None else None
    return SessionCheckin(
        **(extra or {}),
        class_start_time=start_iso,
        class_end_time=end_iso,
        teacher_start_time=start_iso,
        teacher_end_time=end_iso,
        is_completed=True,
        staff_confirmed=False,
    )


def confirm_by_staff(
    existing: Optional[SessionCheckin],
    staff_start: Optional[datetime],
    staff_end: Optional[datetime],
    confirmed_at: Optional[datetime] = None,
) -> SessionCheckin:
    """
    Merge staff-reported times into a teacher check-in.

    Staff times always become the final times; times_match only records
    whether the teacher reported the same instants. Both reports are kept.
    """
    if existing is None or not existing.is_completed:
        raise TeacherNotCheckedInYet()
    if existing.staff_confirmed:
        raise CheckinAlreadyConfirmed()

    staff_start_iso, staff_end_iso = _validated_range(staff_start, staff_end)

    # Older records only carry class_* times from the teacher submission
    teacher_start = existing.teacher_start_time or existing.class_start_time
    teacher_end = existing.teacher_end_time or existing.class_end_time

    times_match = teacher_start == staff_start_iso and teacher_end == staff_end_iso
    duration_minutes = minutes_between(
        parse_utc_datetime(staff_start_iso), parse_utc_datetime(staff_end_iso)
    )
    confirmed_at = confirmed_at or datetime.now(timezone.utc)

    return existing.model_copy(
        update={
            "teacher_start_time": teacher_start,
            "teacher_end_time": teacher_end,
            "class_start_time": staff_start_iso,
            "class_end_time": staff_end_iso,
            "staff_start_time": staff_start_iso,
            "staff_end_time": staff_end_iso,
            "staff_confirmed": True,
            "staff_confirmed_at": normalize_instant(confirmed_at),
            "is_completed": True,
            "times_match": times_match,
            "teaching_duration_minutes": duration_minutes,
            "teaching_duration_hours": round_half_up(duration_minutes / 60, 2),
            "final_time_source": (
                FinalTimeSource.BOTH_AGREE if times_match else FinalTimeSource.STAFF_OVERRIDE
            ),
        }
    )


def read_checkin(teaching_session: TeachingSession) -> Optional[SessionCheckin]:
    raw = (teaching_session.data or {}).get(CHECKIN_KEY)
    if not raw:
        return None
    return SessionCheckin.model_validate(raw)


class CheckinService:
    """Loads a session, applies a check-in transition and writes it back."""

    @staticmethod
    def get_session_or_404(session_id: str, session: Session) -> TeachingSession:
        teaching_session = session.get(TeachingSession, session_id)
        if not teaching_session:
            raise NotFound(f"Session with ID '{session_id}' not found.")
        return teaching_session

    @staticmethod
    def _write_checkin(
        teaching_session: TeachingSession,
        checkin: SessionCheckin,
        expected_version: Optional[int],
        session: Session,
    ) -> TeachingSession:
        read_version = teaching_session.version
        if expected_version is not None and expected_version != read_version:
            raise ConcurrentModification()

        # Only the check-in sub-object changes; sibling keys are carried over
        new_data = {
            **(teaching_session.data or {}),
            CHECKIN_KEY: checkin.model_dump(mode="json"),
        }

        result = session.exec(
            update(TeachingSession)
            .where(TeachingSession.id == teaching_session.id)
            .where(TeachingSession.version == read_version)
            .values(data=new_data, version=read_version + 1)
        )
        if result.rowcount != 1:
            session.rollback()
            raise ConcurrentModification()

        session.commit()
        session.refresh(teaching_session)
        return teaching_session

    @staticmethod
    def submit_teacher_times(
        session_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        session: Session,
        expected_version: Optional[int] = None,
    ) -> TeachingSession:
        teaching_session = CheckinService.get_session_or_404(session_id, session)
        checkin = teacher_check_in(start, end, read_checkin(teaching_session))

        updated = CheckinService._write_checkin(
            teaching_session, checkin, expected_version, session
        )
        logger.info(
            "Teacher check-in for session %s: %s - %s",
            session_id,
            checkin.class_start_time,
            checkin.class_end_time,
        )
        return updated

    @staticmethod
    def confirm_staff_times(
        session_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        session: Session,
        expected_version: Optional[int] = None,
    ) -> TeachingSession:
        teaching_session = CheckinService.get_session_or_404(session_id, session)
        checkin = confirm_by_staff(read_checkin(teaching_session), start, end)

        updated = CheckinService._write_checkin(
            teaching_session, checkin, expected_version, session
        )
        logger.info(
            "Staff confirmed session %s (%s, %s minutes)",
            session_id,
            checkin.final_time_source.value,
            checkin.teaching_duration_minutes,
        )
        return updated
