"""
app/api/applications.py

Purpose: Job application and internship application endpoints

- Public submission from the careers and internship forms
- Admin listing, search, review flags and the soft-delete family,
  registered identically on both routers
"""

from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import Pagination, client_ip, require_admin
from app.schemas.intake import ApplicationCreate, InternCreate, ReviewFlagsUpdate
from app.schemas.response import BulkIdsRequest, CountResponse, SuccessResponse
from app.services.application_service import get_application_service, get_intern_service

Record = SuccessResponse[Dict[str, Any]]

applications_router = APIRouter(prefix="/applications")
interns_router = APIRouter(prefix="/interns")


@applications_router.post("", response_model=Record, status_code=201)
async def create_application(body: ApplicationCreate, request: Request):
    application = await get_application_service().create_application(
        body.model_dump(), ip_address=client_ip(request)
    )
    return SuccessResponse(message="Application submitted", data=application)


@interns_router.post("", response_model=Record, status_code=201)
async def create_intern(body: InternCreate, request: Request):
    intern = await get_intern_service().create_intern(body.model_dump(), ip_address=client_ip(request))
    return SuccessResponse(message="Internship application submitted", data=intern)


def register_review_routes(router: APIRouter, get_service: Callable, entity: str) -> None:
    """
    Adds the admin review routes for one intake collection.
    """
    admin = [Depends(require_admin)]

    @router.get("", dependencies=admin)
    async def list_records(
        pagination: Pagination = Depends(),
        is_replied: Optional[bool] = None,
        is_shortlisted: Optional[bool] = None,
        position: Optional[str] = Query(default=None, max_length=100),
        sort_by: str = "created_at",
        sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    ):
        return await get_service().list_applications(
            page=pagination.page,
            limit=pagination.limit,
            is_replied=is_replied,
            is_shortlisted=is_shortlisted,
            position=position,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    @router.get("/search", dependencies=admin)
    async def search_records(
        q: str = Query(..., min_length=1, max_length=200),
        pagination: Pagination = Depends(),
    ):
        return await get_service().search(q, pagination.page, pagination.limit)

    @router.get("/stats", dependencies=admin)
    async def record_statistics():
        return await get_service().statistics()

    @router.get("/deleted", dependencies=admin)
    async def list_deleted_records(pagination: Pagination = Depends()):
        return await get_service().list_deleted(pagination.page, pagination.limit)

    @router.post("/bulk-delete", response_model=CountResponse, dependencies=admin)
    async def bulk_delete_records(body: BulkIdsRequest):
        return CountResponse(count=await get_service().bulk_delete(body.ids))

    @router.post("/bulk-restore", response_model=CountResponse, dependencies=admin)
    async def bulk_restore_records(body: BulkIdsRequest):
        return CountResponse(count=await get_service().bulk_restore(body.ids))

    @router.get("/{record_id}", response_model=Record, dependencies=admin)
    async def get_record(record_id: str):
        return SuccessResponse(data=await get_service().get(record_id))

    @router.patch("/{record_id}/flags", response_model=Record, dependencies=admin)
    async def update_record_flags(record_id: str, body: ReviewFlagsUpdate):
        record = await get_service().update_flags(record_id, **body.model_dump(exclude_none=True))
        return SuccessResponse(message=f"{entity} updated", data=record)

    @router.delete("/{record_id}", response_model=SuccessResponse[None], dependencies=admin)
    async def delete_record(record_id: str):
        await get_service().delete(record_id)
        return SuccessResponse(message=f"{entity} deleted")

    @router.post("/{record_id}/restore", response_model=Record, dependencies=admin)
    async def restore_record(record_id: str):
        return SuccessResponse(message=f"{entity} restored", data=await get_service().restore(record_id))

    @router.delete("/{record_id}/permanent", response_model=SuccessResponse[None], dependencies=admin)
    async def permanently_delete_record(record_id: str):
        await get_service().permanent_delete(record_id)
        return SuccessResponse(message=f"{entity} permanently deleted")


register_review_routes(applications_router, get_application_service, "Application")
register_review_routes(interns_router, get_intern_service, "Intern")
