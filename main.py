import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

import models.clock_record  # Ensure these models are known by SQLModel for table creation
import models.facility
import models.teaching_session
from api.facility_routes import router as facility_router
from api.session_routes import router as session_router
from api.time_routes import router as time_router
from core.config import LOG_LEVEL, allowed_origins
from core.errors import register_exception_handlers
from db.session import engine

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# This file is the control center of the whole application

allowed_origins_list = allowed_origins()
logger.info("CORS: Allowing origins: %s", allowed_origins_list)


# When We Start, Create the DB Tables if they don't exist
@asynccontextmanager
async def lifespan(app: FastAPI):
    SQLModel.metadata.create_all(engine)
    yield


# Starts Fast API Up; Init
app = FastAPI(title="Meraki ERP", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(time_router, prefix="/time", tags=["Time", "Clock In/Out"])
app.include_router(facility_router, prefix="/facilities", tags=["Facilities", "Geofence"])
app.include_router(session_router, prefix="/sessions", tags=["Sessions", "Check-in"])
