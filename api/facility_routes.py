import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, model_validator
from pydantic import Field as PydanticField
from sqlmodel import Session, col, select

from core.config import DEFAULT_FACILITY_RADIUS_METERS
from core.deps import get_current_user, require_admin_role
from db.session import get_session
from models.facility import Facility

logger = logging.getLogger(__name__)

# --- Router Definition ---
router = APIRouter()


# --- Pydantic Data Models ---


class FacilityBase(BaseModel):
    name: str = PydanticField(..., min_length=1)
    status: str = "active"
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    radius_meters: Optional[float] = PydanticField(default=None, gt=0)  # Ensures radius is positive
    data: dict = PydanticField(default_factory=dict)


class FacilityCreate(FacilityBase):
    pass


class FacilityRead(FacilityBase):
    id: str


# All fields optional; only what the client sends is applied
class FacilityUpdate(BaseModel):
    name: Optional[str] = PydanticField(default=None, min_length=1)
    status: Optional[str] = None
    latitude: Optional[float] = PydanticField(default=None, ge=-90, le=90)
    longitude: Optional[float] = PydanticField(default=None, ge=-180, le=180)
    radius_meters: Optional[float] = PydanticField(default=None, gt=0)
    data: Optional[dict] = None

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        # Coordinates and radius may be cleared; these columns may not
        for field in ("name", "status", "data"):
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class FacilityGeofenceResponse(BaseModel):
    facility_id: str
    name: str
    latitude: float
    longitude: float
    radius_meters: float


def _get_facility_or_404(facility_id: str, session: Session) -> Facility:
    db_facility = session.get(Facility, facility_id)
    if not db_facility:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Facility with ID '{facility_id}' not found.",
        )
    return db_facility


# --- API Endpoints ---


# Endpoint: Create a New Facility
@router.post("", response_model=FacilityRead, status_code=status.HTTP_201_CREATED)
def create_facility(
    facility_in: FacilityCreate,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    try:
        db_facility = Facility(**facility_in.model_dump())
        session.add(db_facility)
        session.commit()
        session.refresh(db_facility)
    except Exception as e:
        session.rollback()
        logger.error("Error creating facility %s: %s", facility_in.name, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create facility.",
        )

    logger.info("Admin %s created facility %s", admin_user.get("email"), db_facility.id)
    return db_facility


# Endpoint: List Facilities
@router.get("", response_model=List[FacilityRead])
def list_facilities(
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[dict, Depends(get_current_user)],
    facility_status: Annotated[Optional[str], Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    statement = select(Facility).order_by(col(Facility.created_at).desc())
    if facility_status:
        statement = statement.where(Facility.status == facility_status)
    statement = statement.offset(offset).limit(limit)
    return session.exec(statement).all()


# Endpoint: Get a Single Facility by ID
@router.get("/{facility_id}", response_model=FacilityRead)
def read_facility(
    facility_id: str,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[dict, Depends(get_current_user)],
):
    return _get_facility_or_404(facility_id, session)


# Endpoint: Geofence of a Facility, used by the clock-in screen to show distance
@router.get("/{facility_id}/geofence", response_model=FacilityGeofenceResponse)
def get_facility_geofence(
    facility_id: str,
    session: Annotated[Session, Depends(get_session)],
):
    facility = _get_facility_or_404(facility_id, session)
    if facility.latitude is None or facility.longitude is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Facility '{facility_id}' has no geofence configured.",
        )

    return FacilityGeofenceResponse(
        facility_id=facility.id,
        name=facility.name,
        latitude=facility.latitude,
        longitude=facility.longitude,
        radius_meters=facility.radius_meters or DEFAULT_FACILITY_RADIUS_METERS,
    )


# Endpoint: Update an Existing Facility by ID
@router.put("/{facility_id}", response_model=FacilityRead)
def update_facility(
    facility_id: str,
    facility_update: FacilityUpdate,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    db_facility = _get_facility_or_404(facility_id, session)

    try:
        # exclude_unset=True ensures we only get fields the client actually sent
        update_data = facility_update.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            setattr(db_facility, key, value)

        session.add(db_facility)
        session.commit()
        session.refresh(db_facility)
    except Exception as e:
        session.rollback()
        logger.error("Error updating facility %s: %s", facility_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not update facility.",
        )

    logger.info("Admin %s updated facility %s", admin_user.get("email"), facility_id)
    return db_facility


# Endpoint: Delete a Facility by ID
@router.delete("/{facility_id}", status_code=status.HTTP_200_OK)
def delete_facility(
    facility_id: str,
    session: Annotated[Session, Depends(get_session)],
    admin_user: Annotated[dict, Depends(require_admin_role)],
):
    db_facility = _get_facility_or_404(facility_id, session)

    try:
        session.delete(db_facility)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Error deleting facility %s: %s", facility_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not delete facility.",
        )

    logger.info("Admin %s deleted facility %s", admin_user.get("email"), facility_id)
    return {
        "success": True,
        "message": f"Facility '{facility_id}' deleted successfully.",
    }
