from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from decimal import Decimal
from lawfirm.models import PaymentFlow, PaymentStage, PaymentStatus

class QuoteResponse(BaseModel):
    case_id: str
    stage: PaymentStage
    amount: Decimal
    total_fee: Decimal
    payment_status: PaymentStatus

class InitiateRequest(BaseModel):
    flow: PaymentFlow = PaymentFlow.STAGED

class InitiateResponse(BaseModel):
    redirect_url: str
    transaction_id: str
    stage: PaymentStage
    amount: Decimal

class CallbackResult(BaseModel):
    message: str
    transaction_id: Optional[str] = None
    case_id: Optional[str] = None
    payment_type: Optional[str] = None
    amount: Optional[Decimal] = None
    replayed: bool = False

class PaymentResponse(BaseModel):
    id: str
    case_id: str
    case_title: Optional[str] = None
    transaction_id: str
    amount: Decimal
    payment_type: str
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    # Only present for admins and lawyers
    admin_share: Optional[Decimal] = None
    lawyer_share: Optional[Decimal] = None
    admin_share_percentage: Optional[Decimal] = None

class PaymentSummary(BaseModel):
    payment_count: int
    total_revenue: Decimal
    total_admin_share: Decimal
    total_lawyer_share: Decimal
