"""
app/services/intake_service.py

Purpose: Shared base for the intake collections
(general contacts, job applications, internship applications)

- Active-record lookup by ObjectId
- Filtered, sorted, paginated listing and free-text search
- Soft-delete family delegated to SoftDeleteRepository
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING

from app.services.soft_delete import SoftDeleteRepository
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging import get_logger
from utils.collection_utils import total_pages
from utils.document_utils import serialize_document
from utils.validation_utils import escape_search_term, parse_object_id

logger = get_logger(__name__)


class IntakeService:
    """
    Base service over one intake collection.

    Subclasses set `entity_name`, `search_fields` and `sortable_fields`.
    """

    entity_name = "Record"
    search_fields: Tuple[str, ...] = ()
    sortable_fields: Tuple[str, ...] = ("created_at", "updated_at")

    def __init__(self, collection_getter: Callable[[], AsyncIOMotorCollection]):
        self._collection_getter = collection_getter
        self.collection: Optional[AsyncIOMotorCollection] = None
        self.repository = SoftDeleteRepository(self._get_collection, self.entity_name)

    def _get_collection(self) -> AsyncIOMotorCollection:
        if self.collection is None:
            self.collection = self._collection_getter()
        return self.collection

    def _object_id(self, record_id: str):
        oid = parse_object_id(record_id)
        if oid is None:
            raise ValidationError(
                f"Invalid {self.entity_name.lower()} id",
                details={"id": record_id}
            )
        return oid

    async def _get_active_raw(self, record_id: str) -> Dict[str, Any]:
        collection = self._get_collection()
        record = await collection.find_one(
            self.repository.active_filter({"_id": self._object_id(record_id)})
        )
        if not record:
            raise ResourceNotFoundError(f"{self.entity_name} not found")
        return record

    async def get(self, record_id: str) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: If record_id is malformed
            ResourceNotFoundError: If no active record matches
        """
        return serialize_document(await self._get_active_raw(record_id))

    async def _insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        collection = self._get_collection()
        result = await collection.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(
            f"{self.entity_name} created",
            extra={"entity_id": str(result.inserted_id)}
        )
        return serialize_document(document)

    async def list_records(
        self,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        """
        Paginated active records matching `filters`.
        """
        if sort_by not in self.sortable_fields:
            raise ValidationError(
                f"Cannot sort by {sort_by}",
                details={"allowed": list(self.sortable_fields)}
            )

        collection = self._get_collection()
        query = self.repository.active_filter(filters)
        total = await collection.count_documents(query)
        cursor = (
            collection.find(query)
            .sort(sort_by, ASCENDING if sort_order == "asc" else DESCENDING)
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

    def search_filter(self, term: str) -> Dict[str, Any]:
        pattern = {"$regex": escape_search_term(term), "$options": "i"}
        return {"$or": [{field: pattern} for field in self.search_fields]}

    async def search(self, term: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        if not term or not term.strip():
            raise ValidationError("Search term is required")
        return await self.list_records(self.search_filter(term), page, limit)

    async def _breakdown(self, field: str) -> List[Dict[str, Any]]:
        """
        Count of active records per value of `field`, largest first.
        """
        collection = self._get_collection()
        rows = await collection.aggregate([
            {"$match": self.repository.active_filter()},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ]).to_list(length=None)
        return [{field: row["_id"], "count": row["count"]} for row in rows]

    # ------------------------------------------------------------
    # Soft-delete family
    # ------------------------------------------------------------

    async def delete(self, record_id: str) -> bool:
        if not await self.repository.soft_delete(record_id):
            raise ResourceNotFoundError(f"{self.entity_name} not found")
        return True

    async def restore(self, record_id: str) -> Dict[str, Any]:
        await self.repository.restore(record_id)
        return await self.get(record_id)

    async def permanent_delete(self, record_id: str) -> bool:
        return await self.repository.permanent_delete(record_id)

    async def bulk_delete(self, record_ids: List[str]) -> int:
        return await self.repository.bulk_soft_delete(record_ids)

    async def bulk_restore(self, record_ids: List[str]) -> int:
        return await self.repository.bulk_restore(record_ids)

    async def list_deleted(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return await self.repository.list_deleted(page, limit)
