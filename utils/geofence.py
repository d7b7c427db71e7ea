# utils/geofence.py

from math import atan2, cos, radians, sin, sqrt
from typing import NamedTuple, Optional, Sequence

from core.errors import NoFacilitiesAvailable

EARTH_RADIUS_M = 6371000


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float


class FacilityLocation(NamedTuple):
    id: str
    name: str
    latitude: float
    longitude: float
    radius_meters: float

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


class LocationVerification(NamedTuple):
    is_valid: bool
    distance_meters: float


class Attribution(NamedTuple):
    chosen: Optional[FacilityLocation]
    distance_meters: float
    is_valid: bool


def compute_distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points, rounded to centimeters."""
    φ1, φ2 = radians(a.latitude), radians(b.latitude)
    Δφ = radians(b.latitude - a.latitude)
    Δλ = radians(b.longitude - a.longitude)

    h = sin(Δφ / 2) ** 2 + cos(φ1) * cos(φ2) * sin(Δλ / 2) ** 2
    c = 2 * atan2(sqrt(h), sqrt(1 - h))
    return round(EARTH_RADIUS_M * c, 2)


def verify_location(
    user: GeoPoint,
    facility: GeoPoint,
    allowed_radius_meters: float,
) -> LocationVerification:
    distance = compute_distance_meters(user, facility)
    return LocationVerification(
        is_valid=distance <= allowed_radius_meters,
        distance_meters=distance,
    )


def attribute_clock_event(
    user: GeoPoint, candidates: Sequence[FacilityLocation]
) -> Attribution:
    """
    Attribute a clock event to the nearest facility.

    The nearest facility is chosen whether or not the user is inside its
    geofence, and validity is judged against that facility's radius only.
    A farther facility with a larger radius never rescues the event.
    """
    if not candidates:
        raise NoFacilitiesAvailable()

    chosen = None
    min_distance = float("inf")
    is_valid = False

    for facility in candidates:
        verification = verify_location(user, facility.point, facility.radius_meters)
        if verification.distance_meters < min_distance:
            min_distance = verification.distance_meters
            chosen = facility
            is_valid = verification.is_valid

    return Attribution(chosen=chosen, distance_meters=min_distance, is_valid=is_valid)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{meters:g}m"
    return f"{meters / 1000:.1f}km"


def location_status_message(
    is_valid: bool, distance_meters: float, allowed_radius_meters: float
) -> str:
    if is_valid:
        return f"Location verified ({format_distance(distance_meters)} from work location)"
    return (
        f"Location not verified ({format_distance(distance_meters)} from work location, "
        f"must be within {format_distance(allowed_radius_meters)})"
    )
