import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from core.config import (
    CLOCK_FACILITY_TYPE,
    DEFAULT_FACILITY_RADIUS_METERS,
    SCHOOL_TIMEZONE,
)
from core.errors import (
    DuplicateClockIn,
    LocationOutOfRange,
    MissingLocation,
    NoFacilitiesAvailable,
    NoOpenClockIn,
)
from models.clock_record import (
    ClockEventRequest,
    ClockRecordQuery,
    ClockRecordRead,
    ClockStatus,
    ClockType,
    EmployeeClockIn,
)
from models.facility import Facility
from utils.datetime_helpers import format_utc_datetime, hours_between, round_half_up
from utils.geofence import (
    Attribution,
    FacilityLocation,
    GeoPoint,
    attribute_clock_event,
    location_status_message,
)
from utils.timezone_helpers import local_work_date

logger = logging.getLogger(__name__)


def to_facility_location(facility: Facility) -> FacilityLocation:
    return FacilityLocation(
        id=facility.id,
        name=facility.name,
        latitude=float(facility.latitude),
        longitude=float(facility.longitude),
        radius_meters=facility.radius_meters or DEFAULT_FACILITY_RADIUS_METERS,
    )


def to_clock_record_read(
    record: EmployeeClockIn, facility_name: Optional[str] = None
) -> ClockRecordRead:
    total_hours = None
    status = ClockStatus.ACTIVE
    if record.clock_out_time is not None:
        total_hours = hours_between(record.clock_in_time, record.clock_out_time)
        status = ClockStatus.COMPLETED

    return ClockRecordRead(
        id=record.id,
        employee_id=record.employee_id,
        work_date=record.work_date,
        clock_in_time=record.clock_in_time,
        clock_out_time=record.clock_out_time,
        facility_id=record.facility_id,
        facility_name=facility_name,
        location_verified=record.location_verified,
        distance_meters=record.distance_meters,
        data=record.data or {},
        status=status,
        total_hours=total_hours,
    )


class ClockService:

    @staticmethod
    def load_clock_facilities(session: Session) -> list[FacilityLocation]:
        """Active facilities of the clock-in type that have coordinates."""
        facilities = session.exec(
            select(Facility)
            .where(Facility.status == "active")
            .where(col(Facility.latitude).is_not(None))
            .where(col(Facility.longitude).is_not(None))
        ).all()

        return [
            to_facility_location(facility)
            for facility in facilities
            if (facility.data or {}).get("type") == CLOCK_FACILITY_TYPE
        ]

    @staticmethod
    def verify_position(
        latitude: Optional[float], longitude: Optional[float], session: Session
    ) -> Attribution:
        # Must supply location before anything else is looked at
        if latitude is None or longitude is None:
            raise MissingLocation()

        candidates = ClockService.load_clock_facilities(session)
        if not candidates:
            raise NoFacilitiesAvailable()

        attribution = attribute_clock_event(GeoPoint(latitude, longitude), candidates)
        if attribution.chosen is None:
            # Only reachable when every distance is NaN
            raise NoFacilitiesAvailable(
                "No work location could be matched to the reported position."
            )

        if not attribution.is_valid:
            logger.warning(
                "Clock event rejected at (%s, %s): %.2fm from %s (radius %sm)",
                latitude,
                longitude,
                attribution.distance_meters,
                attribution.chosen.name,
                attribution.chosen.radius_meters,
            )
            raise LocationOutOfRange(
                distance_meters=attribution.distance_meters,
                required_radius=attribution.chosen.radius_meters,
                facility_name=attribution.chosen.name,
            )

        return attribution

    @staticmethod
    def find_open_records(
        employee_id: str, work_date: date, session: Session
    ) -> list[EmployeeClockIn]:
        # Row lock so a concurrent clock-out cannot close the same shift twice
        return list(
            session.exec(
                select(EmployeeClockIn)
                .where(EmployeeClockIn.employee_id == employee_id)
                .where(EmployeeClockIn.work_date == work_date)
                .where(col(EmployeeClockIn.clock_out_time).is_(None))
                .with_for_update()
            ).all()
        )

    @staticmethod
    def record_clock_event(
        request: ClockEventRequest,
        session: Session,
        now: Optional[datetime] = None,
    ) -> dict:
        attribution = ClockService.verify_position(
            request.latitude, request.longitude, session
        )

        # Capture the time of the request for consistency
        now = now or datetime.now(timezone.utc)
        work_date = local_work_date(now, SCHOOL_TIMEZONE)

        if request.type == ClockType.CLOCK_IN:
            return ClockService.clock_in(request, attribution, work_date, now, session)
        return ClockService.clock_out(request, attribution, work_date, now, session)

    @staticmethod
    def clock_in(
        request: ClockEventRequest,
        attribution: Attribution,
        work_date: date,
        now: datetime,
        session: Session,
    ) -> dict:
        if ClockService.find_open_records(request.employee_id, work_date, session):
            raise DuplicateClockIn()

        facility = attribution.chosen
        record = EmployeeClockIn(
            employee_id=request.employee_id,
            work_date=work_date,
            clock_in_time=now,
            facility_id=facility.id,
            clock_in_latitude=request.latitude,
            clock_in_longitude=request.longitude,
            location_verified=True,
            distance_meters=attribution.distance_meters,
            data={
                **request.data,
                "location_info": {
                    "facility_name": facility.name,
                    "distance_meters": attribution.distance_meters,
                    "verified_at": format_utc_datetime(now),
                },
            },
        )
        session.add(record)

        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            # Lost the race against another clock-in for the same day
            if ClockService.find_open_records(request.employee_id, work_date, session):
                raise DuplicateClockIn()
            raise

        session.refresh(record)
        logger.info(
            "Employee %s clocked in at %s (%.2fm) for %s",
            request.employee_id,
            facility.name,
            attribution.distance_meters,
            work_date,
        )

        return {
            "success": True,
            "data": to_clock_record_read(record, facility.name),
            "message": f"Clocked in at {facility.name} ({int(round_half_up(attribution.distance_meters))}m)",
            "location_status": location_status_message(
                True, attribution.distance_meters, facility.radius_meters
            ),
        }

    @staticmethod
    def clock_out(
        request: ClockEventRequest,
        attribution: Attribution,
        work_date: date,
        now: datetime,
        session: Session,
    ) -> dict:
        open_records = ClockService.find_open_records(
            request.employee_id, work_date, session
        )
        if len(open_records) != 1:
            raise NoOpenClockIn()

        record = open_records[0]
        facility = attribution.chosen

        record.clock_out_time = now
        record.clock_out_latitude = request.latitude
        record.clock_out_longitude = request.longitude
        # Reassign so the JSON column is flagged as changed
        record.data = {
            **(record.data or {}),
            **request.data,
            "clock_out_location": {
                "facility_name": facility.name,
                "latitude": request.latitude,
                "longitude": request.longitude,
                "distance_meters": attribution.distance_meters,
                "verified_at": format_utc_datetime(now),
            },
        }
        session.add(record)
        session.commit()
        session.refresh(record)

        result = to_clock_record_read(record, facility.name)
        logger.info(
            "Employee %s clocked out at %s after %s hours",
            request.employee_id,
            facility.name,
            result.total_hours,
        )

        return {
            "success": True,
            "data": result,
            "message": (
                f"Clocked out at {facility.name}! "
                f"Total working time: {result.total_hours} hours"
            ),
            "location_status": location_status_message(
                True, attribution.distance_meters, facility.radius_meters
            ),
        }

    @staticmethod
    def list_clock_records(
        query: ClockRecordQuery, session: Session
    ) -> list[ClockRecordRead]:
        statement = (
            select(EmployeeClockIn, Facility)
            .join(Facility, EmployeeClockIn.facility_id == Facility.id, isouter=True)
            .order_by(
                col(EmployeeClockIn.work_date).desc(),
                col(EmployeeClockIn.clock_in_time).desc(),
            )
        )

        if query.employee_id:
            statement = statement.where(EmployeeClockIn.employee_id == query.employee_id)
        if query.work_date:
            statement = statement.where(EmployeeClockIn.work_date == query.work_date)
        if query.status == ClockStatus.ACTIVE:
            statement = statement.where(col(EmployeeClockIn.clock_out_time).is_(None))
        elif query.status == ClockStatus.COMPLETED:
            statement = statement.where(col(EmployeeClockIn.clock_out_time).is_not(None))

        statement = statement.offset(query.offset).limit(query.limit)

        return [
            to_clock_record_read(record, facility.name if facility else None)
            for record, facility in session.exec(statement).all()
        ]
