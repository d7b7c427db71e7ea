import json
import logging
import os
from functools import lru_cache

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def initialize_firebase() -> firebase_admin.App:
    """Initialize Firebase Admin SDK on first use with production-ready credential handling"""

    # Method 1: Service Account Key from Environment Variable (Recommended for production)
    service_account_key_json = os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY")
    if service_account_key_json:
        try:
            service_account_info = json.loads(service_account_key_json)
            cred = credentials.Certificate(service_account_info)
            logger.info("Firebase Admin SDK initialized with Service Account Key from environment variable.")
            return firebase_admin.initialize_app(cred)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Error parsing FIREBASE_SERVICE_ACCOUNT_KEY: %s", e)

    # Method 2: Service Account Key File (for local development only)
    service_account_key_path = os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY_PATH")
    if service_account_key_path and os.path.exists(service_account_key_path):
        cred = credentials.Certificate(service_account_key_path)
        logger.info("Firebase Admin SDK initialized with Service Account Key from file path.")
        return firebase_admin.initialize_app(cred)

    # Method 3: Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS or metadata server)
    logger.info("Firebase Admin SDK initialized with Application Default Credentials.")
    return firebase_admin.initialize_app()


def verify_id_token(token: str) -> dict:
    return firebase_auth.verify_id_token(token, app=initialize_firebase())
