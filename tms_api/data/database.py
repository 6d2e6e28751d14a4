# tms_api/data/database.py
import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

from tms_api.config import settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    """Returns the process-wide MongoDB client, creating it on first use."""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB database '{settings.DATABASE_NAME}'")
        _client = MongoClient(settings.MONGODB_URL, tz_aware=True)
    return _client


def get_db() -> Database:
    """FastAPI dependency yielding the application database."""
    return get_client()[settings.DATABASE_NAME]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed.")
