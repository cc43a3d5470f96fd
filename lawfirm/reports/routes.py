from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from lawfirm.actor import Actor
from lawfirm.database import get_db
from lawfirm.auth.dependencies import get_actor
from lawfirm.cases.schemas import CaseListResponse, HearingResponse
from lawfirm.payments.schemas import PaymentResponse
from lawfirm.services.payment_service import PaymentService
from lawfirm.services.report_service import ReportService, ReportType

router = APIRouter(prefix="/reports", tags=["Reports"])


class ReportResponse(BaseModel):
    report_type: ReportType
    start_date: datetime
    end_date: datetime
    total_cases: int
    new_cases: int
    closed_cases: int
    total_revenue: Decimal
    cases: List[CaseListResponse]
    payments: List[PaymentResponse]
    hearings: List[HearingResponse]


@router.get("/", response_model=ReportResponse)
async def get_report(
    report_type: ReportType = ReportType.MONTHLY,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Cases, payments and hearings for a period. Revenue means the lawyer share for lawyers."""
    report = ReportService(db).build_report(actor, report_type, start_date, end_date)
    payments = PaymentService(db)
    return {
        "report_type": report.report_type,
        "start_date": report.start_date,
        "end_date": report.end_date,
        "total_cases": report.total_cases,
        "new_cases": report.new_cases,
        "closed_cases": report.closed_cases,
        "total_revenue": report.total_revenue,
        "cases": report.cases,
        "payments": [payments.payment_view(actor, p) for p in report.payments],
        "hearings": report.hearings,
    }
