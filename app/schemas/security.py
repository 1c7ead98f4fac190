"""
app/schemas/security.py

Purpose: Request/response schemas for sessions, activity and security settings
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from utils.constants import MAX_ACTIVITIES, MAX_PASSWORD_BYTES, MAX_SESSIONS
from utils.validation_utils import password_fits_hash


class DeviceDetails(BaseModel):
    browser: Optional[str] = None
    os: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    ip_address: Optional[str] = None


class AddSessionRequest(BaseModel):
    """Registers a session issued by the auth gateway."""

    token: str = Field(..., min_length=8, max_length=4096, description="Refresh token")
    device_info: Optional[str] = Field(default=None, max_length=500)
    device: Optional[DeviceDetails] = None


class SessionResponse(BaseModel):
    id: str
    device: str
    location: str
    ip: str
    last_active: str
    current: bool
    token: str = Field(..., description="Masked token")
    created_at: Optional[datetime] = None
    device_info: Optional[str] = None


class SessionListResponse(BaseModel):
    sessions: List[SessionResponse] = Field(default_factory=list, max_length=MAX_SESSIONS)


class TerminateSessionResponse(BaseModel):
    success: bool
    message: str


class TerminateAllResponse(BaseModel):
    success: bool
    terminated_count: int


class ActivityCreateRequest(BaseModel):
    type: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=500)
    status: str = Field(default="success")
    location: Optional[str] = Field(default=None, max_length=200)
    device_info: Optional[str] = Field(default=None, max_length=500)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in ("success", "warning", "failed"):
            raise ValueError("status must be one of success, warning, failed")
        return v


class ActivityResponse(BaseModel):
    id: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    timestamp: Optional[datetime] = None
    status: Optional[str] = None
    location: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_info: Optional[str] = None


class ActivityPageResponse(BaseModel):
    activities: List[ActivityResponse] = Field(default_factory=list, max_length=MAX_ACTIVITIES)
    total: int
    page: int
    total_pages: int


class ActivityTypeCount(BaseModel):
    type: Optional[str]
    count: int


class ActivitySummaryResponse(BaseModel):
    total_activities: int
    recent_logins: int
    password_changes: int
    suspicious_activities: int
    top_activity_types: List[ActivityTypeCount]


class SecuritySettings(BaseModel):
    two_factor_auth: bool = False
    login_notifications: bool = True
    session_timeout: bool = True
    device_tracking: bool = True
    password_expiry: bool = False


class SecuritySettingsUpdate(BaseModel):
    two_factor_auth: Optional[bool] = None
    login_notifications: Optional[bool] = None
    session_timeout: Optional[bool] = None
    device_tracking: Optional[bool] = None
    password_expiry: Optional[bool] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_strength(cls, v: str) -> str:
        if not any(c.isdigit() for c in v) or not any(c.isalpha() for c in v):
            raise ValueError("Password must contain letters and digits")
        if not password_fits_hash(v):
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v
