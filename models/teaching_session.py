import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from utils.datetime_helpers import format_utc_datetime

# Key of the check-in sub-object inside TeachingSession.data
CHECKIN_KEY = "teacher_checkin"


class FinalTimeSource(str, Enum):
    BOTH_AGREE = "both_agree"
    STAFF_OVERRIDE = "staff_override"


# One taught class period (a lesson of a class, w/ teacher and optional TA)
class TeachingSession(SQLModel, table=True):
    __tablename__ = "sessions"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    lesson_id: Optional[str] = Field(default=None, index=True)
    subject_type: Optional[str] = None
    teacher_id: Optional[str] = Field(default=None, index=True)
    teaching_assistant_id: Optional[str] = Field(default=None)
    location_id: Optional[str] = Field(default=None, foreign_key="facilities.id")
    start_time: datetime
    end_time: datetime
    data: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    # Bumped on every write of data; guards read-modify-write of the JSON blob
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TeachingSessionCreate(BaseModel):
    lesson_id: Optional[str] = None
    subject_type: Optional[str] = None
    teacher_id: Optional[str] = None
    teaching_assistant_id: Optional[str] = None
    location_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    data: dict = {}


class TeachingSessionRead(BaseModel):
    id: str
    lesson_id: Optional[str] = None
    subject_type: Optional[str] = None
    teacher_id: Optional[str] = None
    teaching_assistant_id: Optional[str] = None
    location_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    data: dict
    version: int

    @field_serializer("start_time", "end_time")
    def serialize_times(self, dt: datetime) -> Optional[str]:
        return format_utc_datetime(dt)


class SessionCheckin(BaseModel):
    """
    Check-in record stored under data["teacher_checkin"] of a session.

    class_start_time/class_end_time hold the authoritative times: the
    teacher's until staff confirms, the staff's afterwards. All times are
    UTC ISO-8601 strings with a Z suffix.
    """

    # Keys written by other clients are carried through untouched
    model_config = ConfigDict(extra="allow")

    class_start_time: Optional[str] = None
    class_end_time: Optional[str] = None
    is_completed: bool = False
    staff_confirmed: bool = False
    staff_confirmed_at: Optional[str] = None
    teacher_start_time: Optional[str] = None
    teacher_end_time: Optional[str] = None
    staff_start_time: Optional[str] = None
    staff_end_time: Optional[str] = None
    times_match: Optional[bool] = None
    teaching_duration_minutes: Optional[int] = None
    teaching_duration_hours: Optional[float] = None
    final_time_source: Optional[FinalTimeSource] = None


# Body for both teacher check-in and staff confirmation
class CheckinTimesRequest(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    # Version the client last read; omitted means "whatever is current"
    expected_version: Optional[int] = None
