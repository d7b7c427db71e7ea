from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from conftest import PHU_MY_HUNG, THAO_DIEN
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
    ClockStatus,
    ClockType,
    EmployeeClockIn,
)
from services.clock_service import ClockService
from utils.datetime_helpers import hours_between
from utils.geofence import Attribution

# 09:00 in Ho Chi Minh City
T0 = datetime(2025, 3, 10, 2, 0, tzinfo=timezone.utc)


def _event(clock_type=ClockType.CLOCK_IN, point=THAO_DIEN, employee_id="E1", **extra):
    return ClockEventRequest(
        employee_id=employee_id,
        type=clock_type,
        latitude=point[0] if point else None,
        longitude=point[1] if point else None,
        **extra,
    )


def test_clock_in_creates_active_record(session, facilities):
    result = ClockService.record_clock_event(_event(), session, now=T0)

    record = result["data"]
    assert result["success"]
    assert record.status == ClockStatus.ACTIVE
    assert record.total_hours is None
    assert record.facility_id == "thao-dien"
    assert record.work_date == date(2025, 3, 10)
    assert record.location_verified
    assert record.distance_meters == 0
    assert record.data["location_info"]["facility_name"] == "Meraki Thao Dien"
    assert result["message"] == "Clocked in at Meraki Thao Dien (0m)"
    assert result["location_status"] == "Location verified (0m from work location)"


def test_work_date_follows_school_timezone(session, facilities):
    # 18:30 UTC is already the next day in Ho Chi Minh City
    late = datetime(2025, 3, 10, 18, 30, tzinfo=timezone.utc)
    result = ClockService.record_clock_event(_event(), session, now=late)
    assert result["data"].work_date == date(2025, 3, 11)


def test_second_clock_in_same_day_is_rejected(session, facilities):
    ClockService.record_clock_event(_event(), session, now=T0)

    with pytest.raises(DuplicateClockIn):
        ClockService.record_clock_event(_event(), session, now=T0 + timedelta(minutes=5))

    assert len(session.exec(select(EmployeeClockIn)).all()) == 1


def test_clock_in_again_after_clock_out(session, facilities):
    ClockService.record_clock_event(_event(), session, now=T0)
    ClockService.record_clock_event(_event(ClockType.CLOCK_OUT), session, now=T0 + timedelta(hours=3))

    result = ClockService.record_clock_event(_event(), session, now=T0 + timedelta(hours=5))
    assert result["data"].status == ClockStatus.ACTIVE


def test_clock_out_computes_total_hours(session, facilities):
    ClockService.record_clock_event(_event(), session, now=T0)

    result = ClockService.record_clock_event(
        _event(ClockType.CLOCK_OUT, data={"note": "evening class"}),
        session,
        now=T0 + timedelta(seconds=5400),
    )

    record = result["data"]
    assert record.status == ClockStatus.COMPLETED
    assert record.total_hours == 1.5
    assert record.data["note"] == "evening class"
    assert record.data["location_info"]["facility_name"] == "Meraki Thao Dien"
    assert record.data["clock_out_location"]["latitude"] == THAO_DIEN[0]
    assert "1.5 hours" in result["message"]


def test_clock_out_without_clock_in_fails(session, facilities):
    with pytest.raises(NoOpenClockIn):
        ClockService.record_clock_event(_event(ClockType.CLOCK_OUT), session, now=T0)


def test_clock_out_only_closes_own_records(session, facilities):
    ClockService.record_clock_event(_event(employee_id="E1"), session, now=T0)

    with pytest.raises(NoOpenClockIn):
        ClockService.record_clock_event(
            _event(ClockType.CLOCK_OUT, employee_id="E2"), session, now=T0 + timedelta(hours=1)
        )


def test_missing_location_is_rejected_first(session):
    # No facilities exist either; the location check comes first
    with pytest.raises(MissingLocation):
        ClockService.record_clock_event(
            ClockEventRequest(employee_id="E1", latitude=10.8), session, now=T0
        )


def test_no_facilities(session):
    with pytest.raises(NoFacilitiesAvailable):
        ClockService.record_clock_event(_event(), session, now=T0)


def test_only_active_meraki_facilities_are_candidates(session, facilities):
    candidates = ClockService.load_clock_facilities(session)

    assert sorted(c.id for c in candidates) == ["phu-my-hung", "thao-dien"]
    # Missing radius falls back to the default geofence
    assert {c.id: c.radius_meters for c in candidates}["phu-my-hung"] == 20


def test_out_of_range_reports_nearest_facility(session, facilities):
    # About 40 m north of Phu My Hung, whose geofence is the default 20 m
    point = (PHU_MY_HUNG[0] + 0.00036, PHU_MY_HUNG[1])

    with pytest.raises(LocationOutOfRange) as exc_info:
        ClockService.record_clock_event(_event(point=point), session, now=T0)

    error = exc_info.value
    assert error.facility_name == "Meraki Phu My Hung"
    assert error.required_radius == 20
    assert 39 < error.distance_meters < 41
    assert error.details["distance"] == 40
    assert error.details["required_distance"] == 20
    assert "within 20m" in error.message


def test_list_clock_records_filters(session, facilities):
    ClockService.record_clock_event(_event(employee_id="E1"), session, now=T0)
    ClockService.record_clock_event(
        _event(ClockType.CLOCK_OUT, employee_id="E1"), session, now=T0 + timedelta(hours=2)
    )
    ClockService.record_clock_event(_event(employee_id="E1"), session, now=T0 + timedelta(days=1))
    ClockService.record_clock_event(
        _event(employee_id="E2", point=PHU_MY_HUNG), session, now=T0
    )

    all_records = ClockService.list_clock_records(ClockRecordQuery(), session)
    assert len(all_records) == 3
    # Newest work date first
    assert all_records[0].work_date == date(2025, 3, 11)

    active = ClockService.list_clock_records(
        ClockRecordQuery(employee_id="E1", status=ClockStatus.ACTIVE), session
    )
    assert [r.work_date for r in active] == [date(2025, 3, 11)]

    completed = ClockService.list_clock_records(
        ClockRecordQuery(status=ClockStatus.COMPLETED), session
    )
    assert len(completed) == 1
    assert completed[0].total_hours == 2.0

    by_date = ClockService.list_clock_records(
        ClockRecordQuery(work_date=date(2025, 3, 10)), session
    )
    assert {r.employee_id for r in by_date} == {"E1", "E2"}
    assert {r.facility_name for r in by_date} == {"Meraki Thao Dien", "Meraki Phu My Hung"}

    paged = ClockService.list_clock_records(ClockRecordQuery(limit=1, offset=1), session)
    assert len(paged) == 1


def test_hours_between_rounds_half_up():
    assert hours_between(T0, T0 + timedelta(minutes=75)) == 1.3
    assert hours_between(T0, T0 + timedelta(minutes=90)) == 1.5


def test_rejection_distance_rounds_halves_up():
    error = LocationOutOfRange(
        distance_meters=26.5, required_radius=20, facility_name="Meraki Phu My Hung"
    )
    assert error.details["distance"] == 27
    assert "Current distance: 27m from Meraki Phu My Hung" in error.message

    assert LocationOutOfRange(26.49, 20, "Meraki Phu My Hung").details["distance"] == 26


def test_clock_in_message_rounds_halves_up(session, facilities, monkeypatch):
    def attribute_at_half_meter(user, candidates):
        chosen = next(c for c in candidates if c.id == "thao-dien")
        return Attribution(chosen=chosen, distance_meters=12.5, is_valid=True)

    monkeypatch.setattr(
        "services.clock_service.attribute_clock_event", attribute_at_half_meter
    )

    result = ClockService.record_clock_event(_event(), session, now=T0)
    assert result["message"] == "Clocked in at Meraki Thao Dien (13m)"


def test_racing_clock_in_maps_to_duplicate(session, facilities, monkeypatch):
    ClockService.record_clock_event(_event(), session, now=T0)

    # The pre-insert check misses the open shift, as it would under a race
    real_find = ClockService.find_open_records
    calls = []

    def find_after_first_miss(employee_id, work_date, db_session):
        calls.append(employee_id)
        if len(calls) == 1:
            return []
        return real_find(employee_id, work_date, db_session)

    monkeypatch.setattr(ClockService, "find_open_records", find_after_first_miss)

    with pytest.raises(DuplicateClockIn):
        ClockService.record_clock_event(_event(), session, now=T0 + timedelta(minutes=1))
    assert len(session.exec(select(EmployeeClockIn)).all()) == 1


def test_other_integrity_errors_are_not_duplicates(session, facilities, monkeypatch):
    def failing_commit():
        raise IntegrityError(
            "INSERT INTO employee_clock_ins", {}, Exception("FOREIGN KEY constraint failed")
        )

    monkeypatch.setattr(session, "commit", failing_commit)

    with pytest.raises(IntegrityError):
        ClockService.record_clock_event(_event(), session, now=T0)
