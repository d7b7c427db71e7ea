import os

from dotenv import load_dotenv

from utils.timezone_helpers import validate_timezone

# Load environment variables from .env file, if it exists
load_dotenv()

# CORS origins
DEV_DOMAIN = os.getenv("DEV_DOMAIN", "http://localhost:3000")
PRODUCTION_DOMAIN = os.getenv("PRODUCTION_DOMAIN", "https://erp.meraki.edu.vn")

# All work dates are computed in the school's local timezone
SCHOOL_TIMEZONE = os.getenv("SCHOOL_TIMEZONE", "Asia/Ho_Chi_Minh")

# Only facilities whose data.type matches count as clock-in locations
CLOCK_FACILITY_TYPE = os.getenv("CLOCK_FACILITY_TYPE", "Meraki")

# Geofence radius used when a facility row has none
DEFAULT_FACILITY_RADIUS_METERS = float(
    os.getenv("DEFAULT_FACILITY_RADIUS_METERS", "20")
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def allowed_origins() -> list[str]:
    origins = [
        DEV_DOMAIN,
        PRODUCTION_DOMAIN,
        "http://127.0.0.1:3000",
    ]
    # Remove any None values and duplicates
    return list(set(origin for origin in origins if origin))


if not validate_timezone(SCHOOL_TIMEZONE):
    raise ValueError(f"SCHOOL_TIMEZONE '{SCHOOL_TIMEZONE}' is not a valid IANA timezone")
