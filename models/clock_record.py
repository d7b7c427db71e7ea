from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_serializer
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, text
from sqlmodel import Field, SQLModel

from utils.datetime_helpers import format_utc_datetime


# Enum Limiting Clock Type to Just Two Vals
class ClockType(str, Enum):
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"


class ClockStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


# Defines the Structure of Data for a Clock in/out Call
class ClockEventRequest(BaseModel):
    employee_id: str = PydanticField(..., min_length=1)
    type: ClockType = ClockType.CLOCK_IN
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    data: dict = PydanticField(default_factory=dict)


# Body for the dedicated /clock-in and /clock-out endpoints, type comes from the path
class ClockLocationRequest(BaseModel):
    employee_id: str = PydanticField(..., min_length=1)
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    data: dict = PydanticField(default_factory=dict)


# One row per work shift: created on clock-in, completed on clock-out
class EmployeeClockIn(SQLModel, table=True):
    __tablename__ = "employee_clock_ins"

    __table_args__ = (
        Index("ix_employee_clock_ins_employee_id_work_date", "employee_id", "work_date"),
        # At most one open shift per employee and day
        Index(
            "uq_employee_clock_ins_open_shift",
            "employee_id",
            "work_date",
            unique=True,
            sqlite_where=text("clock_out_time IS NULL"),
            postgresql_where=text("clock_out_time IS NULL"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    employee_id: str = Field(index=True)
    work_date: date = Field(index=True)
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = Field(default=None)
    facility_id: Optional[str] = Field(default=None, foreign_key="facilities.id")
    clock_in_latitude: Optional[float] = None
    clock_in_longitude: Optional[float] = None
    clock_out_latitude: Optional[float] = None
    clock_out_longitude: Optional[float] = None
    location_verified: bool = Field(default=False)
    distance_meters: Optional[float] = None
    data: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))


class ClockRecordRead(BaseModel):
    id: int
    employee_id: str
    work_date: date
    clock_in_time: datetime
    clock_out_time: Optional[datetime] = None
    facility_id: Optional[str] = None
    facility_name: Optional[str] = None
    location_verified: bool
    distance_meters: Optional[float] = None
    data: dict
    status: ClockStatus
    total_hours: Optional[float] = None

    @field_serializer("clock_in_time", "clock_out_time")
    def serialize_times(self, dt: Optional[datetime]) -> Optional[str]:
        """Ensure times are formatted as UTC with Z suffix"""
        return format_utc_datetime(dt)


# Explicit filters for the clock-record list; nothing is kept between requests
class ClockRecordQuery(BaseModel):
    employee_id: Optional[str] = None
    work_date: Optional[date] = None
    status: Optional[ClockStatus] = None
    limit: int = PydanticField(default=50, ge=1, le=500)
    offset: int = PydanticField(default=0, ge=0)
