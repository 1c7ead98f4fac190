"""
app/api/admin.py

Purpose: Administrative endpoints (admin role required)

- Maintenance: activity retention cleanup, cap enforcement
- User management: listing, status, loyalty points, statistics, first-order hook
- User soft-delete lifecycle
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import Pagination, require_admin
from app.schemas.response import BulkIdsRequest, CountResponse, SuccessResponse
from app.schemas.user import LoyaltyPointsUpdate, UserStatusUpdate
from app.services import activity_service, user_service
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


# ============================================================================
# Maintenance
# ============================================================================

@router.post("/maintenance/cleanup-activities")
async def cleanup_activities(
    retention_days: Optional[int] = Query(default=None, ge=1, le=3650),
):
    days = retention_days or settings.ACTIVITY_RETENTION_DAYS
    logger.info(f"Activity cleanup requested (retention {days} days)")
    return await activity_service.cleanup_old_activities(days)


@router.post("/maintenance/enforce-limits")
async def enforce_limits():
    return await activity_service.enforce_security_limits()


# ============================================================================
# Users
# ============================================================================

@router.get("/users")
async def list_users(
    pagination: Pagination = Depends(),
    role: Optional[str] = Query(default=None, max_length=20),
    search: Optional[str] = Query(default=None, max_length=200),
):
    return await user_service.list_users(pagination.page, pagination.limit, role=role, search=search)


@router.get("/users/stats")
async def user_statistics():
    return await user_service.user_statistics()


@router.get("/users/deleted")
async def list_deleted_users(pagination: Pagination = Depends()):
    return await user_service.list_deleted_accounts(pagination.page, pagination.limit)


@router.post("/users/bulk-delete", response_model=CountResponse)
async def bulk_delete_users(body: BulkIdsRequest):
    return CountResponse(count=await user_service.bulk_delete_accounts(body.ids))


@router.post("/users/bulk-restore", response_model=CountResponse)
async def bulk_restore_users(body: BulkIdsRequest):
    return CountResponse(count=await user_service.bulk_restore_accounts(body.ids))


@router.get("/users/{user_id}", response_model=SuccessResponse[Dict[str, Any]])
async def get_user(user_id: str):
    return SuccessResponse(data=await user_service.get_user(user_id))


@router.patch("/users/{user_id}/status", response_model=SuccessResponse[Dict[str, Any]])
async def update_user_status(user_id: str, body: UserStatusUpdate):
    user = await user_service.update_user_status(user_id, **body.model_dump(exclude_none=True))
    return SuccessResponse(message="User status updated", data=user)


@router.patch("/users/{user_id}/loyalty-points", response_model=SuccessResponse[Dict[str, Any]])
async def update_loyalty_points(user_id: str, body: LoyaltyPointsUpdate):
    balance = await user_service.adjust_loyalty_points(user_id, body.points, body.operation)
    return SuccessResponse(message="Loyalty points updated", data={"loyalty_points": balance})


@router.post("/users/{user_id}/first-order", response_model=SuccessResponse[None])
async def record_first_order(user_id: str):
    """
    Called by the order pipeline when a user completes their first order.
    """
    granted = await user_service.record_first_order(user_id)
    return SuccessResponse(
        success=granted,
        message="First-order bonus granted" if granted else "No first-order bonus applicable",
    )


@router.delete("/users/{user_id}", response_model=SuccessResponse[None])
async def delete_user(user_id: str):
    await user_service.delete_account(user_id)
    return SuccessResponse(message="User deleted")


@router.post("/users/{user_id}/restore", response_model=SuccessResponse[None])
async def restore_user(user_id: str):
    await user_service.restore_account(user_id)
    return SuccessResponse(message="User restored")


@router.delete("/users/{user_id}/permanent", response_model=SuccessResponse[None])
async def permanently_delete_user(user_id: str):
    await user_service.permanently_delete_account(user_id)
    return SuccessResponse(message="User permanently deleted")
