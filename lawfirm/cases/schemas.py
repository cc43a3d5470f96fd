from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime
from decimal import Decimal
from lawfirm.models import CaseStatus, PaymentStatus, UserRole

# Case schemas
class CaseCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    case_type: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    client_id: str
    lawyer_id: str
    admin_share_percentage: Optional[Decimal] = None  # Defaults to the firm-wide rate

class CaseStatusUpdate(BaseModel):
    status: CaseStatus

class UserBasic(BaseModel):
    id: str
    email: str
    role: UserRole

    class Config:
        from_attributes = True

class CaseListResponse(BaseModel):
    id: str
    title: str
    case_type: str
    status: CaseStatus
    payment_status: PaymentStatus
    total_fee: Decimal
    start_date: datetime
    end_date: Optional[datetime] = None
    client_id: str
    lawyer_id: str

    class Config:
        from_attributes = True

class CaseResponse(CaseListResponse):
    description: str
    admin_share_percentage: Decimal
    client: Optional[UserBasic] = None
    lawyer: Optional[UserBasic] = None

class CaseStats(BaseModel):
    total_cases: int
    open_cases: int
    closed_cases: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]

class LawyerWorkload(BaseModel):
    lawyer_id: str
    full_name: str
    specialization: Optional[str] = None
    active_cases: int
    max_cases: int
    is_full: bool

# Hearing schemas
class HearingCreate(BaseModel):
    hearing_date: datetime
    court_name: str = Field(..., max_length=150)
    notes: Optional[str] = ""

class HearingResponse(BaseModel):
    id: str
    case_id: str
    hearing_date: datetime
    court_name: str
    notes: Optional[str] = None
    reminder_sent: bool

    class Config:
        from_attributes = True

class ReminderResult(BaseModel):
    reminders_sent: int

# Document schemas
class DocumentResponse(BaseModel):
    id: str
    case_id: str
    file_name: str
    content_type: Optional[str] = None
    file_size: int
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CaseDetailResponse(CaseResponse):
    hearings: List[HearingResponse] = []
    documents: List[DocumentResponse] = []
