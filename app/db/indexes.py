"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Enforces uniqueness of user identity and referral fields
- Supports the soft-delete filters every default query applies
"""

from pymongo import ASCENDING, DESCENDING

from app.db.mongo import (
    get_users_collection,
    get_contacts_collection,
    get_applications_collection,
    get_interns_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        contacts = get_contacts_collection()
        applications = get_applications_collection()
        interns = get_interns_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS COLLECTION INDEXES
        # ==============================================

        await users.create_index("user_id", unique=True, name="user_id_unique")
        await users.create_index("account.email", unique=True, name="email_unique")
        await users.create_index("account.phone", unique=True, name="phone_unique")
        logger.debug("Created unique identity indexes on users")

        await users.create_index(
            "referral.referral_code", unique=True, name="referral_code_unique"
        )
        await users.create_index(
            "referral.referral_id", unique=True, sparse=True, name="referral_id_unique"
        )
        logger.debug("Created unique referral indexes on users")

        # Cross-document referral lookups (first-order bonus)
        await users.create_index(
            "referral.referred_by.user_id", sparse=True, name="referred_by_idx"
        )

        await users.create_index(
            [("status.is_deleted", ASCENDING), ("created_at", DESCENDING)],
            name="user_active_created_idx"
        )
        await users.create_index("security.role", name="user_role_idx")

        # Retention sweep over activities
        await users.create_index(
            "security.activities.timestamp", name="activity_timestamp_idx"
        )
        logger.debug("Created lifecycle indexes on users")

        # ==============================================
        # INTAKE COLLECTIONS
        # ==============================================

        await contacts.create_index(
            [("is_deleted", ASCENDING), ("created_at", DESCENDING)],
            name="contact_active_created_idx"
        )
        await contacts.create_index(
            [("status", ASCENDING), ("is_deleted", ASCENDING)],
            name="contact_status_idx"
        )
        await contacts.create_index("assigned_to", name="contact_assignee_idx")

        await applications.create_index(
            [("is_deleted", ASCENDING), ("created_at", DESCENDING)],
            name="application_active_created_idx"
        )
        await applications.create_index("position", name="application_position_idx")

        await interns.create_index(
            [("is_deleted", ASCENDING), ("created_at", DESCENDING)],
            name="intern_active_created_idx"
        )
        logger.debug("Created indexes on intake collections")

        logger.info("All database indexes created successfully")

        user_indexes = await users.index_information()
        contact_indexes = await contacts.index_information()

        logger.info(
            f"Index summary: Users={len(user_indexes)}, "
            f"Contacts={len(contact_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


async def drop_all_indexes():
    """
    Drops all custom indexes (keeps _id index).
    Use with caution! Only for maintenance/migration.
    """
    try:
        logger.warning("Dropping all database indexes...")

        for collection in (
            get_users_collection(),
            get_contacts_collection(),
            get_applications_collection(),
            get_interns_collection(),
        ):
            await collection.drop_indexes()

        logger.info("All indexes dropped successfully")

    except Exception as e:
        logger.error(f"Failed to drop indexes: {str(e)}", exc_info=True)
        raise
