"""
app/api/referral.py

Purpose: Referral ledger endpoints

- Ledger view, stats, reward claims and settings for the calling user
- Public referral code validation (no identity required)
"""

from fastapi import APIRouter, Depends, Path, Request

from app.api.deps import client_ip, get_current_user_id
from app.schemas.referral import (
    ClaimRewardRequest,
    ReferralDataResponse,
    ReferralSettings,
    ReferralSettingsUpdate,
    ReferralStatsResponse,
    ValidateCodeResponse,
)
from app.schemas.response import SuccessResponse
from app.services.referral_service import get_referral_service

router = APIRouter(prefix="/referrals")


@router.get("", response_model=ReferralDataResponse)
async def get_referral_data(user_id: str = Depends(get_current_user_id)):
    return await get_referral_service().get_referral_data(user_id)


@router.get("/stats", response_model=ReferralStatsResponse)
async def get_referral_stats(user_id: str = Depends(get_current_user_id)):
    return await get_referral_service().get_referral_stats(user_id)


@router.post("/claim", response_model=SuccessResponse[None])
async def claim_reward(
    body: ClaimRewardRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    """
    Claims one reward. Errors map to 404 (unknown reward), 410 (expired)
    and 409 (already claimed).
    """
    await get_referral_service().claim_reward(user_id, body.reward_id, ip_address=client_ip(request))
    return SuccessResponse(message="Reward claimed successfully")


@router.patch("/settings", response_model=ReferralSettings)
async def update_referral_settings(
    body: ReferralSettingsUpdate,
    user_id: str = Depends(get_current_user_id),
):
    return await get_referral_service().update_referral_settings(user_id, body.model_dump(exclude_none=True))


@router.get("/validate/{code}", response_model=ValidateCodeResponse)
async def validate_referral_code(code: str = Path(..., min_length=1, max_length=32)):
    return await get_referral_service().validate_referral_code(code)
