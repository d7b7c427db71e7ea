from .clock_record import (
    ClockEventRequest,
    ClockLocationRequest,
    ClockRecordQuery,
    ClockRecordRead,
    ClockStatus,
    ClockType,
    EmployeeClockIn,
)
from .facility import Facility
from .teaching_session import (
    CheckinTimesRequest,
    FinalTimeSource,
    SessionCheckin,
    TeachingSession,
)
