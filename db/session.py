import logging
import os

from dotenv import load_dotenv
from sqlmodel import Session, create_engine

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Connects app to the hosted PostgreSQL database

# A full URL wins; otherwise it is assembled from the individual parts
DATABASE_URL = os.getenv("DATABASE_URL")
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "5432")  # Default PostgreSQL port
DB_NAME = os.getenv("DB_NAME")
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")

required_vars_for_tcp = ["DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD"]


def build_database_url() -> str:
    if DATABASE_URL:
        return DATABASE_URL

    present = [var for var in required_vars_for_tcp if os.getenv(var)]
    if not present:
        # Nothing configured at all: local development database
        logger.warning("No database configured, using local SQLite file meraki.db")
        return "sqlite:///./meraki.db"

    missing_vars = [var for var in required_vars_for_tcp if not os.getenv(var)]
    if missing_vars:
        raise ValueError(
            f"Missing required environment variables for TCP: {', '.join(missing_vars)}"
        )
    return f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


def make_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # FastAPI may run sync endpoints on different threads
        connect_args["check_same_thread"] = False
    # Note: echo=True will log all SQL statements, set to False in production
    return create_engine(url, echo=False, connect_args=connect_args)


# The Wire / Link That Lets Us Pass Data from App -> db
engine = make_engine(build_database_url())


# Getter for this Wire, modified for FastAPI dependency injection
def get_session():
    with Session(engine) as session:
        try:
            yield session
        finally:
            session.close()
