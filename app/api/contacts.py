"""
app/api/contacts.py

Purpose: Support contact endpoints

- Public submission from the contact form
- Admin listing, search, workflow updates and the soft-delete family
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import Pagination, client_ip, require_admin
from app.schemas.intake import (
    AssignRequest,
    ContactCreate,
    ContactStatusUpdate,
    ContactStatusValue,
    PriorityValue,
    ResolveRequest,
)
from app.schemas.response import BulkIdsRequest, CountResponse, SuccessResponse
from app.services.contact_service import get_contact_service

router = APIRouter(prefix="/contacts")

Record = SuccessResponse[Dict[str, Any]]


@router.post("", response_model=Record, status_code=201)
async def create_contact(body: ContactCreate, request: Request):
    contact = await get_contact_service().create_contact(body.model_dump(), ip_address=client_ip(request))
    return SuccessResponse(message="Your message has been received", data=contact)


@router.get("", dependencies=[Depends(require_admin)])
async def list_contacts(
    pagination: Pagination = Depends(),
    status: Optional[ContactStatusValue] = None,
    priority: Optional[PriorityValue] = None,
    issue_type: Optional[str] = Query(default=None, max_length=100),
    assigned_to: Optional[str] = Query(default=None, max_length=100),
    sort_by: str = "created_at",
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
):
    return await get_contact_service().list_contacts(
        page=pagination.page,
        limit=pagination.limit,
        status=status,
        priority=priority,
        issue_type=issue_type,
        assigned_to=assigned_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/search", dependencies=[Depends(require_admin)])
async def search_contacts(
    q: str = Query(..., min_length=1, max_length=200),
    pagination: Pagination = Depends(),
):
    return await get_contact_service().search(q, pagination.page, pagination.limit)


@router.get("/stats", dependencies=[Depends(require_admin)])
async def contact_statistics():
    return await get_contact_service().statistics()


@router.get("/deleted", dependencies=[Depends(require_admin)])
async def list_deleted_contacts(pagination: Pagination = Depends()):
    return await get_contact_service().list_deleted(pagination.page, pagination.limit)


@router.post("/bulk-delete", response_model=CountResponse, dependencies=[Depends(require_admin)])
async def bulk_delete_contacts(body: BulkIdsRequest):
    return CountResponse(count=await get_contact_service().bulk_delete(body.ids))


@router.post("/bulk-restore", response_model=CountResponse, dependencies=[Depends(require_admin)])
async def bulk_restore_contacts(body: BulkIdsRequest):
    return CountResponse(count=await get_contact_service().bulk_restore(body.ids))


@router.get("/{contact_id}", response_model=Record, dependencies=[Depends(require_admin)])
async def get_contact(contact_id: str):
    return SuccessResponse(data=await get_contact_service().get(contact_id))


@router.patch("/{contact_id}/status", response_model=Record, dependencies=[Depends(require_admin)])
async def update_contact_status(contact_id: str, body: ContactStatusUpdate):
    contact = await get_contact_service().update_status(contact_id, **body.model_dump(exclude_none=True))
    return SuccessResponse(message="Contact updated", data=contact)


@router.post("/{contact_id}/assign", response_model=Record, dependencies=[Depends(require_admin)])
async def assign_contact(contact_id: str, body: AssignRequest):
    return SuccessResponse(message="Contact assigned", data=await get_contact_service().assign(contact_id, body.agent))


@router.post("/{contact_id}/resolve", response_model=Record, dependencies=[Depends(require_admin)])
async def resolve_contact(contact_id: str, body: ResolveRequest):
    contact = await get_contact_service().mark_resolved(contact_id, body.response_notes)
    return SuccessResponse(message="Contact resolved", data=contact)


@router.delete("/{contact_id}", response_model=SuccessResponse[None], dependencies=[Depends(require_admin)])
async def delete_contact(contact_id: str):
    await get_contact_service().delete(contact_id)
    return SuccessResponse(message="Contact deleted")


@router.post("/{contact_id}/restore", response_model=Record, dependencies=[Depends(require_admin)])
async def restore_contact(contact_id: str):
    return SuccessResponse(message="Contact restored", data=await get_contact_service().restore(contact_id))


@router.delete(
    "/{contact_id}/permanent",
    response_model=SuccessResponse[None],
    dependencies=[Depends(require_admin)],
)
async def permanently_delete_contact(contact_id: str):
    await get_contact_service().permanent_delete(contact_id)
    return SuccessResponse(message="Contact permanently deleted")
