from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from lawfirm.models import UserRole

class Token(BaseModel):
    access_token: str
    token_type: str
    role: Optional[UserRole] = None

class TokenData(BaseModel):
    email: Optional[str] = None
    role: Optional[UserRole] = None

class ProfileResponse(BaseModel):
    full_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    additional_info: Optional[str] = None
    specialization: Optional[str] = None  # For lawyers
    date_of_joining: Optional[datetime] = None  # For lawyers

    class Config:
        from_attributes = True

class UserResponse(BaseModel):
    id: str
    email: str
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    profile: Optional[ProfileResponse] = None

    class Config:
        from_attributes = True

class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8)

class MessageResponse(BaseModel):
    message: str
