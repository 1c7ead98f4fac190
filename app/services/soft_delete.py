"""
app/services/soft_delete.py

Purpose: Soft-delete lifecycle shared by users and intake collections

- soft_delete / restore / permanent_delete for a single record
- bulk soft delete and restore in one update_many
- Paginated listing of deleted records

Records are addressed either by ObjectId `_id` (contacts, applications,
interns) or by a string key such as `user_id` (users), and the flag paths
are configurable (`is_deleted` vs `status.is_deleted`).
"""

from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING

from app.core.exceptions import ConflictError, ResourceNotFoundError, ValidationError
from app.core.logging import get_logger
from utils.collection_utils import total_pages
from utils.document_utils import serialize_document
from utils.time_utils import utc_now
from utils.validation_utils import parse_object_id

logger = get_logger(__name__)


class SoftDeleteRepository:
    """
    Soft-delete operations over one collection.

    Args:
        collection_getter: Returns the Motor collection (resolved lazily)
        entity_name: Human-readable name used in messages ("Contact")
        id_field: Field identifying a record ("_id" or "user_id")
        flag_field: Path of the deleted flag
        deleted_at_field: Path of the deletion timestamp
    """

    def __init__(
        self,
        collection_getter: Callable[[], AsyncIOMotorCollection],
        entity_name: str,
        id_field: str = "_id",
        flag_field: str = "is_deleted",
        deleted_at_field: str = "deleted_at",
    ):
        self._collection_getter = collection_getter
        self.entity_name = entity_name
        self.id_field = id_field
        self.flag_field = flag_field
        self.deleted_at_field = deleted_at_field

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self._collection_getter()

    # ------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------

    def _parse_id(self, record_id: str) -> Optional[Any]:
        if self.id_field == "_id":
            return parse_object_id(record_id)
        return record_id or None

    def _require_id(self, record_id: str) -> Any:
        parsed = self._parse_id(record_id)
        if parsed is None:
            raise ValidationError(
                f"Invalid {self.entity_name.lower()} id",
                details={"id": record_id}
            )
        return parsed

    def active_filter(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Default filter: records that are not soft-deleted.
        """
        return {self.flag_field: {"$ne": True}, **(extra or {})}

    def deleted_filter(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {self.flag_field: True, **(extra or {})}

    # ------------------------------------------------------------
    # Single record
    # ------------------------------------------------------------

    async def soft_delete(self, record_id: str) -> bool:
        """
        Marks an active record deleted.

        Returns:
            True if a record was soft-deleted, False if none was active

        Raises:
            ValidationError: If record_id is malformed
        """
        key = self._require_id(record_id)
        now = utc_now()
        result = await self.collection.update_one(
            self.active_filter({self.id_field: key}),
            {"$set": {
                self.flag_field: True,
                self.deleted_at_field: now,
                "updated_at": now,
            }}
        )

        deleted = result.modified_count > 0
        if deleted:
            logger.info(f"{self.entity_name} soft-deleted", extra={"entity_id": str(key)})
        return deleted

    async def restore(self, record_id: str) -> bool:
        """
        Clears the deleted flag and timestamp.

        Raises:
            ValidationError: If record_id is malformed
            ResourceNotFoundError: If no deleted record matches
        """
        key = self._require_id(record_id)
        result = await self.collection.update_one(
            self.deleted_filter({self.id_field: key}),
            {"$set": {
                self.flag_field: False,
                self.deleted_at_field: None,
                "updated_at": utc_now(),
            }}
        )

        if result.modified_count == 0:
            raise ResourceNotFoundError(f"Deleted {self.entity_name.lower()} not found")

        logger.info(f"{self.entity_name} restored", extra={"entity_id": str(key)})
        return True

    async def permanent_delete(self, record_id: str) -> bool:
        """
        Physically removes a record that has already been soft-deleted.

        Raises:
            ValidationError: If record_id is malformed
            ConflictError: If the record exists but is not soft-deleted
            ResourceNotFoundError: If the record does not exist
        """
        key = self._require_id(record_id)
        result = await self.collection.delete_one(self.deleted_filter({self.id_field: key}))

        if result.deleted_count == 0:
            exists = await self.collection.count_documents({self.id_field: key}, limit=1)
            if exists:
                raise ConflictError(
                    f"{self.entity_name} must be soft-deleted before permanent deletion"
                )
            raise ResourceNotFoundError(f"{self.entity_name} not found")

        logger.warning(f"{self.entity_name} permanently deleted", extra={"entity_id": str(key)})
        return True

    # ------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------

    def _parse_many(self, record_ids: List[str]) -> List[Any]:
        parsed = [self._parse_id(record_id) for record_id in record_ids or []]
        valid = [key for key in parsed if key is not None]
        if not valid:
            raise ValidationError(f"No valid {self.entity_name.lower()} ids provided")

        skipped = len(parsed) - len(valid)
        if skipped:
            logger.warning(
                f"Skipping {skipped} malformed {self.entity_name.lower()} ids",
                extra={"operation": "bulk"}
            )
        return valid

    async def bulk_soft_delete(self, record_ids: List[str]) -> int:
        """
        Soft-deletes many records in one update.

        Returns:
            Number of records newly marked deleted
        """
        keys = self._parse_many(record_ids)
        now = utc_now()
        result = await self.collection.update_many(
            self.active_filter({self.id_field: {"$in": keys}}),
            {"$set": {self.flag_field: True, self.deleted_at_field: now, "updated_at": now}}
        )
        logger.info(f"Bulk soft-deleted {result.modified_count} {self.entity_name.lower()} records")
        return result.modified_count

    async def bulk_restore(self, record_ids: List[str]) -> int:
        keys = self._parse_many(record_ids)
        result = await self.collection.update_many(
            self.deleted_filter({self.id_field: {"$in": keys}}),
            {"$set": {self.flag_field: False, self.deleted_at_field: None, "updated_at": utc_now()}}
        )
        logger.info(f"Bulk restored {result.modified_count} {self.entity_name.lower()} records")
        return result.modified_count

    # ------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------

    async def list_deleted(
        self,
        page: int = 1,
        limit: int = 10,
        projection: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Paginated soft-deleted records, most recently deleted first.
        """
        query = self.deleted_filter()
        total = await self.collection.count_documents(query)
        cursor = (
            self.collection.find(query, projection)
            .sort(self.deleted_at_field, DESCENDING)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        items = await cursor.to_list(length=limit)

        return {
            "items": serialize_document(items),
            "total": total,
            "page": page,
            "total_pages": total_pages(total, limit),
        }
