"""
app/services/application_service.py

Purpose: Job and internship application intake

- Creation from the public careers / internship forms
- Review flags (replied, shortlisted)
- Listing filters and statistics
"""

from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from app.db.mongo import get_applications_collection, get_interns_collection
from app.models.application import build_application_document, build_intern_document
from app.services.intake_service import IntakeService
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging import get_logger
from utils.document_utils import serialize_document
from utils.time_utils import utc_now

logger = get_logger(__name__)


class _ReviewedIntakeService(IntakeService):
    """Shared review-flag handling for applications and interns."""

    sortable_fields = ("created_at", "updated_at", "full_name")

    async def list_applications(
        self,
        page: int = 1,
        limit: int = 10,
        is_replied: Optional[bool] = None,
        is_shortlisted: Optional[bool] = None,
        position: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if is_replied is not None:
            filters["is_replied"] = is_replied
        if is_shortlisted is not None:
            filters["is_shortlisted"] = is_shortlisted
        if position:
            filters["position"] = position
        return await self.list_records(filters, page, limit, sort_by, sort_order)

    async def update_flags(
        self,
        record_id: str,
        is_replied: Optional[bool] = None,
        is_shortlisted: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: If neither flag is supplied or the id is malformed
            ResourceNotFoundError: If no active record matches
        """
        changes: Dict[str, Any] = {}
        if is_replied is not None:
            changes["is_replied"] = is_replied
        if is_shortlisted is not None:
            changes["is_shortlisted"] = is_shortlisted
        if not changes:
            raise ValidationError("No review flags provided")

        collection = self._get_collection()
        updated = await collection.find_one_and_update(
            self.repository.active_filter({"_id": self._object_id(record_id)}),
            {"$set": {**changes, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise ResourceNotFoundError(f"{self.entity_name} not found")

        logger.info(
            f"{self.entity_name} flags updated",
            extra={"entity_id": record_id, "fields": list(changes)}
        )
        return serialize_document(updated)

    async def statistics(self) -> Dict[str, Any]:
        collection = self._get_collection()
        active = self.repository.active_filter()
        return {
            "total": await collection.count_documents(active),
            "replied": await collection.count_documents({**active, "is_replied": True}),
            "shortlisted": await collection.count_documents({**active, "is_shortlisted": True}),
            "deleted": await collection.count_documents(self.repository.deleted_filter()),
        }


class ApplicationService(_ReviewedIntakeService):
    """Service for job applications."""

    entity_name = "Application"
    search_fields = ("full_name", "email", "position", "message")
    sortable_fields = ("created_at", "updated_at", "full_name", "position")

    def __init__(self):
        super().__init__(get_applications_collection)

    async def create_application(self, data: Dict[str, Any], ip_address: Optional[str] = None) -> Dict[str, Any]:
        return await self._insert(build_application_document(data, ip_address=ip_address))

    async def statistics(self) -> Dict[str, Any]:
        stats = await super().statistics()
        stats["position_breakdown"] = await self._breakdown("position")
        return stats


class InternService(_ReviewedIntakeService):
    """Service for internship applications."""

    entity_name = "Intern"
    search_fields = ("full_name", "college", "contact_info.email", "information.message")

    def __init__(self):
        super().__init__(get_interns_collection)

    async def create_intern(self, data: Dict[str, Any], ip_address: Optional[str] = None) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: If privacy consent was not given
        """
        if not data.get("privacy_consent"):
            raise ValidationError("Privacy consent is required")
        return await self._insert(build_intern_document(data, ip_address=ip_address))


# Global instances
_application_service: Optional[ApplicationService] = None
_intern_service: Optional[InternService] = None


def get_application_service() -> ApplicationService:
    """Get or create global application service instance."""
    global _application_service
    if _application_service is None:
        _application_service = ApplicationService()
    return _application_service


def get_intern_service() -> InternService:
    """Get or create global intern service instance."""
    global _intern_service
    if _intern_service is None:
        _intern_service = InternService()
    return _intern_service
