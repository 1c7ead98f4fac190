"""
app/schemas/user.py

Purpose: User account, profile, status and address schemas
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from utils.constants import MAX_PASSWORD_BYTES
from utils.validation_utils import normalize_phone, password_fits_hash, validate_email, validate_phone


class SignupRequest(BaseModel):
    fullname: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=254)
    phone: str = Field(..., description="10-15 digits, optional leading +")
    password: str = Field(..., min_length=8, max_length=128)
    username: Optional[str] = Field(default=None, max_length=50)
    gender: Literal["male", "female", "other"] = "other"
    referral_code: Optional[str] = Field(default=None, max_length=16)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        v = v.strip().lower()
        if not validate_email(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str) -> str:
        if not validate_phone(v):
            raise ValueError("Invalid phone number")
        return normalize_phone(v)

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        if not password_fits_hash(v):
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v

    @field_validator("referral_code")
    @classmethod
    def normalize_referral_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip().upper()


class ProfileUpdate(BaseModel):
    fullname: Optional[str] = Field(default=None, min_length=2, max_length=100)
    username: Optional[str] = Field(default=None, max_length=50)
    gender: Optional[Literal["male", "female", "other"]] = None
    profile_picture_url: Optional[str] = Field(default=None, max_length=1000)


class UserStatusUpdate(BaseModel):
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None
    is_banned: Optional[bool] = None
    ban_reason: Optional[str] = Field(default=None, max_length=500)


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AddressCreate(BaseModel):
    label: Optional[str] = Field(default=None, max_length=50)
    house_number: str = Field(..., min_length=1, max_length=50)
    street: str = Field(..., min_length=1, max_length=200)
    area: Optional[str] = Field(default=None, max_length=200)
    landmark: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zipcode: str = Field(..., min_length=3, max_length=12)
    country: str = Field(default="India", max_length=100)
    coordinates: Optional[Coordinates] = None


class AddressUpdate(BaseModel):
    label: Optional[str] = Field(default=None, max_length=50)
    house_number: Optional[str] = Field(default=None, max_length=50)
    street: Optional[str] = Field(default=None, max_length=200)
    area: Optional[str] = Field(default=None, max_length=200)
    landmark: Optional[str] = Field(default=None, max_length=200)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zipcode: Optional[str] = Field(default=None, min_length=3, max_length=12)
    country: Optional[str] = Field(default=None, max_length=100)
    coordinates: Optional[Coordinates] = None


class FavoritesAdd(BaseModel):
    kitchen_ids: List[str] = Field(..., min_length=1, max_length=50)


class LoyaltyPointsUpdate(BaseModel):
    points: int = Field(..., ge=0, le=1_000_000)
    operation: Literal["add", "subtract", "set"] = "add"
