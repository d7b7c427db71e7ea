# Insert Sample Facilities
import logging

from sqlmodel import Session, SQLModel, select

from core.config import CLOCK_FACILITY_TYPE
from db.session import engine
from models.facility import Facility

logger = logging.getLogger(__name__)

SAMPLE_FACILITIES = [
    {
        "name": "Meraki Thao Dien",
        "latitude": 10.8031,
        "longitude": 106.7335,
        "radius_meters": 50.0,
        "data": {"type": CLOCK_FACILITY_TYPE, "address": "Thao Dien, Thu Duc"},
    },
    {
        "name": "Meraki Phu My Hung",
        "latitude": 10.7293,
        "longitude": 106.7187,
        "radius_meters": 20.0,
        "data": {"type": CLOCK_FACILITY_TYPE, "address": "Tan Phong, District 7"},
    },
    {
        # Partner venue: has coordinates but is never a clock-in location
        "name": "Partner School Binh Thanh",
        "latitude": 10.8106,
        "longitude": 106.7091,
        "radius_meters": 100.0,
        "data": {"type": "Partner"},
    },
]


def seed_facilities():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        for entry in SAMPLE_FACILITIES:
            # Check if the facility already exists to avoid duplicates
            existing = session.exec(
                select(Facility).where(Facility.name == entry["name"])
            ).first()
            if existing:
                logger.info("%s already exists", entry["name"])
                continue

            session.add(Facility(**entry))
            logger.info("Added %s", entry["name"])

        session.commit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed_facilities()
