"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: users (with embedded sessions, activities, addresses and
  referral ledger), general_contacts, applications, interns
- Health checks and retry logic
- Topology report (transactions need a replica set or mongos)
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Any, Dict, Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

USERS_COLLECTION = "users"
CONTACTS_COLLECTION = "general_contacts"
APPLICATIONS_COLLECTION = "applications"
INTERNS_COLLECTION = "interns"

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            _client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                timeoutMS=settings.MONGODB_OPERATION_TIMEOUT_MS,
                retryWrites=True,
                retryReads=True,
            )

            _database = _client[settings.MONGODB_DB_NAME]

            # Verify connection
            await _client.admin.command("ping")

            logger.info(
                f"Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )

            if settings.MONGODB_TRANSACTIONS_ENABLED:
                deployment = await describe_deployment()
                if not deployment["transactions_supported"]:
                    logger.warning(
                        "Standalone MongoDB server: referral writes will use the "
                        "non-transactional fallback"
                    )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            _client = None
            _database = None

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


async def describe_deployment() -> Dict[str, Any]:
    """
    Reports the server topology and whether multi-document transactions
    can run on it (replica set members and mongos only).
    """
    if _client is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )

    hello = await _client.admin.command("hello")
    replica_set = hello.get("setName")
    sharded = hello.get("msg") == "isdbgrid"
    return {
        "replica_set": replica_set,
        "sharded": sharded,
        "transactions_supported": bool(replica_set) or sharded,
    }


def get_client() -> AsyncIOMotorClient:
    """
    Returns the Motor client (needed to start sessions for transactions).

    Raises:
        RuntimeError: If the client is not initialized
    """
    if _client is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _client


def _get_collection(name: str) -> AsyncIOMotorCollection:
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database[name]


def get_users_collection() -> AsyncIOMotorCollection:
    """
    Returns the users collection.

    Embedded arrays:
    - security.tokens: sessions, capped at 10, most recent first
    - security.activities: audit trail, capped at 20, most recent first
    - addresses: soft-deletable address book
    - referral.referrals / referral.rewards: referral ledger
    """
    return _get_collection(USERS_COLLECTION)


def get_contacts_collection() -> AsyncIOMotorCollection:
    """Returns the general_contacts collection."""
    return _get_collection(CONTACTS_COLLECTION)


def get_applications_collection() -> AsyncIOMotorCollection:
    """Returns the applications (job applications) collection."""
    return _get_collection(APPLICATIONS_COLLECTION)


def get_interns_collection() -> AsyncIOMotorCollection:
    """Returns the interns (internship applications) collection."""
    return _get_collection(INTERNS_COLLECTION)
