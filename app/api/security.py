"""
app/api/security.py

Purpose: Session registry and security activity endpoints

- Thin wrappers over session_service, activity_service and security_service
- Caller identity from the auth gateway (see app/api/deps.py)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import client_ip, get_current_token, get_current_user_id
from app.schemas.response import SuccessResponse
from app.schemas.security import (
    ActivityCreateRequest,
    ActivityPageResponse,
    ActivitySummaryResponse,
    AddSessionRequest,
    ChangePasswordRequest,
    SecuritySettings,
    SecuritySettingsUpdate,
    SessionListResponse,
    TerminateAllResponse,
    TerminateSessionResponse,
)
from app.services import activity_service, security_service, session_service
from app.core.exceptions import ValidationError
from utils.constants import DEFAULT_ACTIVITY_SUMMARY_DAYS, MAX_ACTIVITIES
from utils.device_utils import parse_user_agent

router = APIRouter(prefix="/security")


@router.get("/sessions", response_model=SessionListResponse)
async def get_sessions(
    user_id: str = Depends(get_current_user_id),
    token: Optional[str] = Depends(get_current_token),
):
    sessions = await session_service.list_sessions(user_id, current_token=token)
    return {"sessions": sessions}


@router.post("/sessions", response_model=SuccessResponse[dict], status_code=201)
async def create_session(
    body: AddSessionRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    """
    Registers a session issued by the auth gateway.

    Device details missing from the body are derived from the request's
    User-Agent and client IP.
    """
    device = body.device.model_dump() if body.device else {}
    parsed = parse_user_agent(request.headers.get("user-agent"))
    for key, value in parsed.items():
        if not device.get(key):
            device[key] = value
    if not device.get("ip_address"):
        device["ip_address"] = client_ip(request)

    await session_service.add_session(
        user_id,
        body.token,
        device_info=body.device_info or request.headers.get("user-agent"),
        device=device,
    )
    sessions = await session_service.list_sessions(user_id, current_token=body.token)
    return SuccessResponse(message="Session added", data={"sessions": sessions})


@router.delete("/sessions/{session_id}", response_model=TerminateSessionResponse)
async def delete_session(
    session_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    return await session_service.terminate_session(user_id, session_id, ip_address=client_ip(request))


@router.delete("/sessions", response_model=TerminateAllResponse)
async def delete_other_sessions(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    token: Optional[str] = Depends(get_current_token),
):
    """Signs out every session except the calling one."""
    return await session_service.terminate_all_sessions(user_id, token, ip_address=client_ip(request))


@router.post("/logout", response_model=SuccessResponse[None])
async def logout(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    token: Optional[str] = Depends(get_current_token),
):
    if not token:
        raise ValidationError("Bearer token required to log out")
    removed = await session_service.remove_session_token(user_id, token, ip_address=client_ip(request))
    return SuccessResponse(
        success=removed,
        message="Logged out" if removed else "Session already ended",
    )


@router.get("/activity", response_model=ActivityPageResponse)
async def get_activity(
    user_id: str = Depends(get_current_user_id),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=MAX_ACTIVITIES, ge=1, le=MAX_ACTIVITIES),
    type: Optional[str] = Query(default=None, max_length=50),
    status: Optional[str] = Query(default=None, max_length=20),
):
    return await activity_service.query_activities(
        user_id, page=page, limit=limit, activity_type=type, status=status
    )


@router.post("/activity", response_model=SuccessResponse[None], status_code=201)
async def record_activity(
    body: ActivityCreateRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    stored = await activity_service.append_activity(user_id, {
        **body.model_dump(),
        "ip_address": client_ip(request),
        "user_agent": request.headers.get("user-agent"),
    })
    return SuccessResponse(
        success=stored,
        message="Activity recorded" if stored else "Activity not recorded",
    )


@router.get("/activity/summary", response_model=ActivitySummaryResponse)
async def get_activity_summary(
    user_id: str = Depends(get_current_user_id),
    days: int = Query(default=DEFAULT_ACTIVITY_SUMMARY_DAYS, ge=1, le=365),
):
    return await activity_service.activity_summary(user_id, days=days)


@router.get("/settings", response_model=SecuritySettings)
async def get_settings(user_id: str = Depends(get_current_user_id)):
    return await security_service.get_security_settings(user_id)


@router.patch("/settings", response_model=SecuritySettings)
async def patch_settings(
    body: SecuritySettingsUpdate,
    user_id: str = Depends(get_current_user_id),
):
    return await security_service.update_security_settings(user_id, body.model_dump(exclude_none=True))


@router.post("/password", response_model=SuccessResponse[None])
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    return await security_service.change_password(
        user_id,
        body.current_password,
        body.new_password,
        ip_address=client_ip(request),
    )
