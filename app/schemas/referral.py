"""
app/schemas/referral.py

Purpose: Referral ledger request/response schemas

All identifiers in responses are Fernet-encrypted strings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ReferredBy(BaseModel):
    user_id: str
    fullname: Optional[str] = None
    referral_code: Optional[str] = None
    joined_at: Optional[datetime] = None
    rewards_claimed: bool = False
    rewards_claimed_at: Optional[datetime] = None


class ReferralEntry(BaseModel):
    id: str
    user_id: str
    fullname: Optional[str] = None
    email: Optional[str] = None
    joined_at: Optional[datetime] = None
    status: Optional[str] = None
    reward_earned: int = 0
    reward_claimed: bool = False
    order_completed: bool = False
    first_order_date: Optional[datetime] = None


class Reward(BaseModel):
    id: str
    type: Optional[str] = None
    amount: int = 0
    description: Optional[str] = None
    earned_at: Optional[datetime] = None
    claimed: bool = False
    claimed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    expired: bool = False


class ReferralStats(BaseModel):
    total_referrals: int = 0
    successful_referrals: int = 0
    total_rewards_earned: int = 0
    total_rewards_claimed: int = 0
    pending_rewards: int = 0
    referral_conversion_rate: float = 0.0


class ReferralSettings(BaseModel):
    share_via_email: bool = True
    share_via_sms: bool = True
    share_via_social: bool = True
    notify_on_referral_join: bool = True
    notify_on_reward_earned: bool = True


class ReferralSettingsUpdate(BaseModel):
    share_via_email: Optional[bool] = None
    share_via_sms: Optional[bool] = None
    share_via_social: Optional[bool] = None
    notify_on_referral_join: Optional[bool] = None
    notify_on_reward_earned: Optional[bool] = None


class ReferralDataResponse(BaseModel):
    referral_code: Optional[str] = None
    referral_id: Optional[str] = None
    referred_by: Optional[ReferredBy] = None
    referrals: List[ReferralEntry] = Field(default_factory=list)
    rewards: List[Reward] = Field(default_factory=list)
    stats: ReferralStats
    settings: ReferralSettings


class ReferralStatsResponse(BaseModel):
    referral_code: Optional[str] = None
    stats: ReferralStats
    total_rewards: int
    unclaimed_rewards: int


class ClaimRewardRequest(BaseModel):
    reward_id: str = Field(..., min_length=1, description="Encrypted reward id")


class ValidateCodeResponse(BaseModel):
    valid: bool
    referrer_name: Optional[str] = None
    bonus: Optional[int] = None
