"""
Database initialization script

Creates the collections' indexes and reports document counts:
    python scripts/init_db.py
    python scripts/init_db.py --reset    # drop custom indexes first
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are read
load_dotenv()

from app.core.logging import setup_logging, get_logger  # noqa: E402
from app.db.indexes import create_indexes, drop_all_indexes  # noqa: E402
from app.db.mongo import (  # noqa: E402
    close_mongo_connection,
    connect_to_mongo,
    describe_deployment,
    get_applications_collection,
    get_contacts_collection,
    get_interns_collection,
    get_users_collection,
)

setup_logging()
logger = get_logger("scripts.init_db")


async def report_collections():
    """Log index names and document counts for every collection."""
    for collection in (
        get_users_collection(),
        get_contacts_collection(),
        get_applications_collection(),
        get_interns_collection(),
    ):
        indexes = await collection.index_information()
        count = await collection.count_documents({})
        logger.info(f"📋 {collection.name}: {count} documents")
        for idx_name in indexes:
            if idx_name != "_id_":
                logger.info(f"    ✅ {idx_name}")


async def main(reset: bool = False):
    logger.info("=" * 60)
    logger.info("  Platewise Database Setup")
    logger.info("=" * 60)

    await connect_to_mongo()
    try:
        if reset:
            await drop_all_indexes()
        await create_indexes()
        await report_collections()

        deployment = await describe_deployment()
        if deployment["transactions_supported"]:
            logger.info("✅ Transactions supported (replica set or mongos)")
        else:
            logger.warning("⚠️ Standalone server: set MONGODB_TRANSACTIONS_ENABLED=false to skip the transaction attempt")
        logger.info("✅ Database initialization complete!")
    except Exception as e:
        logger.error(f"❌ Error: {e}")
        raise
    finally:
        await close_mongo_connection()


if __name__ == "__main__":
    asyncio.run(main(reset="--reset" in sys.argv[1:]))
