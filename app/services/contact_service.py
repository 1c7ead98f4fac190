"""
app/services/contact_service.py

Purpose: General contact (support request) lifecycle

- Creation from the public contact form
- Status workflow with transition validation
- Assignment to agents and resolution
- Support statistics
"""

import re
from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from app.db.mongo import get_contacts_collection
from app.models.contact import ContactStatus, build_contact_document, is_valid_transition
from app.services.intake_service import IntakeService
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging import get_logger, LogContext
from utils.document_utils import serialize_document
from utils.time_utils import utc_now

logger = get_logger(__name__)

MS_PER_HOUR = 1000 * 60 * 60


class ContactService(IntakeService):
    """Service for support requests submitted through the contact form."""

    entity_name = "Contact"
    search_fields = ("name", "email", "subject", "issue_type", "message")
    sortable_fields = ("created_at", "updated_at", "priority", "status", "resolved_at")

    def __init__(self):
        super().__init__(get_contacts_collection)

    async def create_contact(self, data: Dict[str, Any], ip_address: Optional[str] = None) -> Dict[str, Any]:
        return await self._insert(build_contact_document(data, ip_address=ip_address))

    async def list_contacts(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        issue_type: Optional[str] = None,
        assigned_to: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = status
        if priority:
            filters["priority"] = priority
        if issue_type:
            filters["issue_type"] = {"$regex": f"^{re.escape(issue_type)}$", "$options": "i"}
        if assigned_to:
            filters["assigned_to"] = assigned_to
        return await self.list_records(filters, page, limit, sort_by, sort_order)

    async def update_status(
        self,
        contact_id: str,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        response_notes: Optional[str] = None,
        customer_satisfaction_rating: Optional[int] = None,
        follow_up_required: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Updates workflow fields of a contact.

        resolved_at is stamped only when the status changes to resolved.

        Raises:
            ValidationError: On an invalid status transition or empty update
            ResourceNotFoundError: If the contact does not exist
        """
        with LogContext(entity_id=contact_id, operation="update_contact_status"):
            current = await self._get_active_raw(contact_id)
            now = utc_now()
            changes: Dict[str, Any] = {}

            if status is not None:
                current_status = ContactStatus(current.get("status", ContactStatus.PENDING.value))
                try:
                    new_status = ContactStatus(status)
                except ValueError as e:
                    raise ValidationError(f"Unknown contact status: {status}") from e
                if not is_valid_transition(current_status, new_status):
                    logger.warning(
                        f"Invalid contact status transition: {current_status.value} -> {new_status.value}",
                        extra={"entity_id": contact_id}
                    )
                    raise ValidationError(
                        f"Invalid status transition: {current_status.value} -> {new_status.value}"
                    )
                changes["status"] = new_status.value
                if new_status == ContactStatus.RESOLVED and current_status != ContactStatus.RESOLVED:
                    changes["resolved_at"] = now

            if assigned_to is not None:
                changes["assigned_to"] = assigned_to
            if response_notes is not None:
                changes["response_notes"] = response_notes
            if customer_satisfaction_rating is not None:
                if not 1 <= customer_satisfaction_rating <= 5:
                    raise ValidationError("Satisfaction rating must be between 1 and 5")
                changes["customer_satisfaction_rating"] = customer_satisfaction_rating
            if follow_up_required is not None:
                changes["follow_up_required"] = follow_up_required

            if not changes:
                raise ValidationError("No contact fields provided")

            collection = self._get_collection()
            updated = await collection.find_one_and_update(
                self.repository.active_filter({"_id": current["_id"]}),
                {"$set": {**changes, "updated_at": now}},
                return_document=ReturnDocument.AFTER
            )
            if updated is None:
                raise ResourceNotFoundError("Contact not found")

            logger.info("Contact updated", extra={"entity_id": contact_id, "fields": list(changes)})
            return serialize_document(updated)

    async def assign(self, contact_id: str, agent: str) -> Dict[str, Any]:
        """
        Assigns the contact; a pending contact moves to in-progress.
        """
        current = await self._get_active_raw(contact_id)
        status = ContactStatus.IN_PROGRESS.value if current.get("status") == ContactStatus.PENDING.value else None
        return await self.update_status(contact_id, status=status, assigned_to=agent)

    async def mark_resolved(self, contact_id: str, response_notes: Optional[str] = None) -> Dict[str, Any]:
        return await self.update_status(
            contact_id,
            status=ContactStatus.RESOLVED.value,
            response_notes=response_notes,
        )

    async def statistics(self) -> Dict[str, Any]:
        collection = self._get_collection()
        active = self.repository.active_filter()

        counts = {
            status.value: await collection.count_documents({**active, "status": status.value})
            for status in ContactStatus
        }

        resolution = await collection.aggregate([
            {"$match": {**active, "status": ContactStatus.RESOLVED.value, "resolved_at": {"$ne": None}}},
            {"$project": {
                "hours": {"$divide": [{"$subtract": ["$resolved_at", "$created_at"]}, MS_PER_HOUR]}
            }},
            {"$group": {"_id": None, "average": {"$avg": "$hours"}}},
        ]).to_list(length=1)
        average_hours = resolution[0]["average"] if resolution and resolution[0].get("average") else 0

        return {
            "total_contacts": await collection.count_documents(active),
            "pending_contacts": counts[ContactStatus.PENDING.value],
            "in_progress_contacts": counts[ContactStatus.IN_PROGRESS.value],
            "resolved_contacts": counts[ContactStatus.RESOLVED.value],
            "closed_contacts": counts[ContactStatus.CLOSED.value],
            "priority_breakdown": await self._breakdown("priority"),
            "issue_type_breakdown": await self._breakdown("issue_type"),
            "average_resolution_hours": round(average_hours, 2),
        }


# Global instance
_contact_service: Optional[ContactService] = None


def get_contact_service() -> ContactService:
    """Get or create global contact service instance."""
    global _contact_service
    if _contact_service is None:
        _contact_service = ContactService()
    return _contact_service
