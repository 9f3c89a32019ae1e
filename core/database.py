"""
MongoDB Database Connector (Singleton Pattern).

The async client is created lazily on first use and shared by the process.
"""
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from core.config import config
from core.logging import get_logger

# Initialize logger for database module
logger = get_logger("database")

_db_client: AsyncMongoClient | None = None
_database: AsyncDatabase | None = None


def get_db() -> AsyncDatabase:
    """
    Returns the MongoDB database instance (Singleton).

    The client connects lazily, so this never blocks the event loop.

    Returns:
        AsyncDatabase: The MongoDB database object.
    """
    global _db_client, _database

    if _database is None:
        try:
            logger.info("Connecting to MongoDB", extra={"database": config.DATABASE_NAME})
            _db_client = AsyncMongoClient(config.MONGO_URI, tz_aware=True)
            _database = _db_client[config.DATABASE_NAME]
            logger.info("MongoDB client ready", extra={"database": config.DATABASE_NAME})
        except Exception:
            logger.error("Failed to connect to MongoDB", exc_info=True)
            raise

    return _database


async def close_db() -> None:
    """Close the database connection."""
    global _db_client, _database

    if _db_client:
        try:
            await _db_client.close()
            logger.info("Database connection closed")
        except Exception:
            logger.error("Error closing database connection", exc_info=True)
        finally:
            _db_client = None
            _database = None
