import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

# School facility (branch, classroom building, office) w/ optional circular geofence


class Facility(SQLModel, table=True):
    __tablename__ = "facilities"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        description="Unique facility identifier",
    )
    name: str = Field(index=True, description="Human-friendly facility name")
    status: str = Field(default="active", index=True)
    latitude: Optional[float] = Field(default=None, description="Latitude of facility center")
    longitude: Optional[float] = Field(default=None, description="Longitude of facility center")
    radius_meters: Optional[float] = Field(
        default=None, description="Allowed clock-in radius in meters"
    )
    # Free-form attributes; data["type"] marks which facilities accept clock-ins
    data: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
