from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from lawfirm.models import UserRole

class RegistrationRequest(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=250)
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    additional_info: Optional[str] = None
    role: UserRole = UserRole.CLIENT
    specialization: Optional[str] = None  # For lawyers

class PendingUserResponse(BaseModel):
    id: str
    full_name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    additional_info: Optional[str] = None
    role: UserRole
    specialization: Optional[str] = None
    requested_at: Optional[datetime] = None
    is_processed: bool
    admin_note: Optional[str] = None

    class Config:
        from_attributes = True

class RejectRequest(BaseModel):
    reason: Optional[str] = ""

class LawyerCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=250)
    specialization: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = None
    date_of_joining: Optional[datetime] = None

class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None
    # Only applied to lawyers
    specialization: Optional[str] = None
    date_of_joining: Optional[datetime] = None

class AdminCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=2, max_length=250)

class AdminBootstrap(AdminCreate):
    setup_token: Optional[str] = None
