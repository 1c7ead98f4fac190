"""
app/schemas/intake.py

Purpose: Contact, job application and internship application schemas
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from utils.validation_utils import sanitize_input, validate_email, validate_phone

ContactStatusValue = Literal["pending", "in-progress", "resolved", "closed"]
PriorityValue = Literal["low", "medium", "high", "urgent"]


def _checked_email(v: str) -> str:
    v = v.strip().lower()
    if not validate_email(v):
        raise ValueError("Invalid email format")
    return v


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=254)
    phone: Optional[str] = None
    issue_type: str = Field(..., min_length=2, max_length=100)
    subject: str = Field(..., min_length=2, max_length=200)
    message: str = Field(..., min_length=5, max_length=5000)
    priority: PriorityValue = "low"

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        return _checked_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: Optional[str]) -> Optional[str]:
        if v and not validate_phone(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("message")
    @classmethod
    def clean_message(cls, v: str) -> str:
        return sanitize_input(v, max_length=5000)


class ContactStatusUpdate(BaseModel):
    status: Optional[ContactStatusValue] = None
    assigned_to: Optional[str] = Field(default=None, max_length=100)
    response_notes: Optional[str] = Field(default=None, max_length=5000)
    customer_satisfaction_rating: Optional[int] = Field(default=None, ge=1, le=5)
    follow_up_required: Optional[bool] = None


class AssignRequest(BaseModel):
    agent: str = Field(..., min_length=1, max_length=100)


class ResolveRequest(BaseModel):
    response_notes: Optional[str] = Field(default=None, max_length=5000)


class ApplicationCreate(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=254)
    phone: str
    position: str = Field(..., min_length=2, max_length=100)
    experience: Optional[str] = Field(default=None, max_length=100)
    message: Optional[str] = Field(default=None, max_length=5000)
    resume_link: Optional[str] = Field(default=None, max_length=1000)
    portfolio_link: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        return _checked_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, v: str) -> str:
        if not validate_phone(v):
            raise ValueError("Invalid phone number")
        return v


class InternContactInfo(BaseModel):
    email: str = Field(..., max_length=254)
    phone: str

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v: str) -> str:
        return _checked_email(v)


class InternInformation(BaseModel):
    experience: Optional[str] = Field(default=None, max_length=100)
    message: Optional[str] = Field(default=None, max_length=5000)


class InternLinks(BaseModel):
    resume_link: Optional[str] = Field(default=None, max_length=1000)
    linkedin: Optional[str] = Field(default=None, max_length=1000)
    portfolio_link: Optional[str] = Field(default=None, max_length=1000)


class InternCreate(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    college: Optional[str] = Field(default=None, max_length=200)
    contact_info: InternContactInfo
    information: InternInformation = Field(default_factory=InternInformation)
    links: InternLinks = Field(default_factory=InternLinks)
    additional_info: Dict[str, Any] = Field(default_factory=dict, description="Client fingerprint")
    privacy_consent: bool


class ReviewFlagsUpdate(BaseModel):
    is_replied: Optional[bool] = None
    is_shortlisted: Optional[bool] = None
