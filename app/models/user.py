"""
app/models/user.py

Purpose: User document model

- Role, reward and referral status enums
- Builders for the user document and its embedded entries
  (sessions, activities, addresses, referral entries, rewards)
- Single source of truth for embedded field names
"""

import random
import secrets
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId

from utils.constants import (
    ACTIVITY_STATUS_SUCCESS,
    ADDRESS_FIELDS,
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_LENGTH,
    REFERRAL_SETTINGS_KEYS,
)
from utils.time_utils import days_from_now, utc_now


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    CAPTAIN = "captain"
    KITCHEN = "kitchen"


class RewardType(str, Enum):
    REFERRAL_BONUS = "referral_bonus"
    SIGNUP_BONUS = "signup_bonus"
    FIRST_ORDER_BONUS = "first_order_bonus"


class ReferralStatus(str, Enum):
    """
    Per-referral lifecycle: pending -> verified -> completed.
    Signup marks an entry verified; the referred user's first order completes it.
    """
    PENDING = "pending"
    VERIFIED = "verified"
    COMPLETED = "completed"


def active_user_query(user_id: str) -> Dict[str, Any]:
    """
    Filter matching a user that has not been soft-deleted.
    """
    return {"user_id": user_id, "status.is_deleted": {"$ne": True}}


def generate_user_id(now: Optional[datetime] = None) -> str:
    """
    Generates a user id: "USER" + YYYYMMDDHHMMSS + 6 random digits.
    """
    stamp = (now or utc_now()).strftime("%Y%m%d%H%M%S")
    return f"USER{stamp}{random.randint(0, 999999):06d}"


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """
    Generates an uppercase alphanumeric referral code.
    Uniqueness is enforced by the referral_code_unique index; callers retry.
    """
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


def build_session(
    token: str,
    device_info: Optional[str] = None,
    device: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    device = device or {}
    return {
        "_id": ObjectId(),
        "token": token,
        "created_at": now or utc_now(),
        "device_info": device_info,
        "device": {
            "browser": device.get("browser"),
            "os": device.get("os"),
            "type": device.get("type"),
            "location": device.get("location"),
            "ip_address": device.get("ip_address"),
        },
    }


def build_activity(data: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    return {
        "_id": ObjectId(),
        "type": data.get("type"),
        "description": data.get("description", ""),
        "status": data.get("status") or ACTIVITY_STATUS_SUCCESS,
        "location": data.get("location"),
        "ip_address": data.get("ip_address"),
        "user_agent": data.get("user_agent"),
        "device_info": data.get("device_info"),
        "timestamp": now or utc_now(),
    }


def build_address(fields: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    address = {key: fields.get(key) for key in ADDRESS_FIELDS}
    address["landmark"] = address.get("landmark") or ""
    address.update({
        "_id": ObjectId(),
        "is_deleted": False,
        "deleted_at": None,
        "created_at": now or utc_now(),
    })
    return address


def build_reward(
    reward_type: RewardType,
    amount: int,
    description: str,
    expires_in_days: Optional[int],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or utc_now()
    return {
        "_id": ObjectId(),
        "type": reward_type.value,
        "amount": amount,
        "description": description,
        "earned_at": now,
        "claimed": False,
        "claimed_at": None,
        "expires_at": days_from_now(expires_in_days, now) if expires_in_days else None,
    }


def build_referral_entry(
    referred_user: Dict[str, Any],
    reward_earned: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    return {
        "_id": ObjectId(),
        "user_id": referred_user["user_id"],
        "fullname": referred_user.get("fullname"),
        "email": (referred_user.get("account") or {}).get("email"),
        "referral_code": (referred_user.get("referral") or {}).get("referral_code"),
        "joined_at": now or utc_now(),
        "status": ReferralStatus.VERIFIED.value,
        "reward_earned": reward_earned,
        "reward_claimed": False,
        "order_completed": False,
        "first_order_date": None,
    }


def empty_referral_stats() -> Dict[str, int]:
    return {
        "total_referrals": 0,
        "successful_referrals": 0,
        "total_rewards_earned": 0,
        "total_rewards_claimed": 0,
        "pending_rewards": 0,
    }


def build_user_document(
    *,
    user_id: str,
    fullname: str,
    email: str,
    phone: str,
    password_hash: str,
    referral_code: str,
    encrypted_referral_id: str,
    role: UserRole = UserRole.USER,
    username: Optional[str] = None,
    gender: str = "other",
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Builds a fresh user document ready for insertion.

    The password must already be hashed and the referral id already encrypted.
    """
    now = now or utc_now()
    return {
        "user_id": user_id,
        "fullname": fullname.strip(),
        "account": {
            "email": email,
            "phone": phone,
            "password": password_hash,
            "username": username,
            "gender": gender,
            "profile_picture_url": "",
        },
        "security": {
            "role": role.value,
            "ip_address": ip_address,
            "tokens": [],
            "activities": [],
            "two_factor_auth": False,
            "login_notifications": True,
            "session_timeout": True,
            "device_tracking": True,
            "password_expiry": False,
        },
        "addresses": [],
        "activity": {
            "member_since": now,
            "loyalty_points": 0,
            "favorites": [],
        },
        "referral": {
            "referral_code": referral_code,
            "referral_id": encrypted_referral_id,
            "referred_by": None,
            "referrals": [],
            "rewards": [],
            "stats": empty_referral_stats(),
            "settings": {key: True for key in REFERRAL_SETTINGS_KEYS},
        },
        "status": {
            "is_verified": False,
            "is_active": True,
            "is_banned": False,
            "ban_reason": None,
            "banned_at": None,
            "is_deleted": False,
            "deleted_at": None,
        },
        "last_login": None,
        "last_profile_update": now,
        "last_password_change": now,
        "created_at": now,
        "updated_at": now,
    }
