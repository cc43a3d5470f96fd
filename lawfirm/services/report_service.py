"""Period reports over cases, payments and hearings, scoped to the viewer."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
import calendar
import enum

from sqlalchemy import desc
from sqlalchemy.orm import Session

from lawfirm.actor import Actor
from lawfirm.exceptions import ValidationRejection
from lawfirm.models import Case, CaseStatus, Hearing, Payment


class ReportType(str, enum.Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    CUSTOM = "Custom"


def months_before(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 - months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def report_period(
    report_type: ReportType,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    now = now or datetime.utcnow()
    if report_type == ReportType.DAILY:
        day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return day, day + timedelta(days=1) - timedelta(microseconds=1)
    if report_type == ReportType.WEEKLY:
        return now - timedelta(days=7), now
    if report_type == ReportType.MONTHLY:
        return months_before(now, 1), now
    if report_type == ReportType.YEARLY:
        return months_before(now, 12), now

    start = start or months_before(now, 1)
    end = end or now
    if start > end:
        raise ValidationRejection("Report start date must be before the end date")
    return start, end


@dataclass
class Report:
    report_type: ReportType
    start_date: datetime
    end_date: datetime
    total_cases: int = 0
    new_cases: int = 0
    closed_cases: int = 0
    total_revenue: Decimal = Decimal("0.00")
    cases: List[Case] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    hearings: List[Hearing] = field(default_factory=list)


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def build_report(
        self,
        actor: Actor,
        report_type: ReportType = ReportType.CUSTOM,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None
    ) -> Report:
        start, end = report_period(report_type, start, end, now)

        cases = self.db.query(Case).filter(Case.start_date >= start, Case.start_date <= end)
        payments = self.db.query(Payment).join(Case, Payment.case_id == Case.id).filter(
            Payment.payment_date >= start, Payment.payment_date <= end
        )
        hearings = self.db.query(Hearing).join(Case, Hearing.case_id == Case.id).filter(
            Hearing.hearing_date >= start, Hearing.hearing_date <= end
        )

        if actor.is_lawyer:
            cases = cases.filter(Case.lawyer_id == actor.user_id)
            payments = payments.filter(Case.lawyer_id == actor.user_id)
            hearings = hearings.filter(Case.lawyer_id == actor.user_id)
        elif actor.is_client:
            cases = cases.filter(Case.client_id == actor.user_id)
            payments = payments.filter(Case.client_id == actor.user_id)
            hearings = hearings.filter(Case.client_id == actor.user_id)

        case_list = cases.order_by(desc(Case.start_date)).all()
        payment_list = payments.order_by(desc(Payment.payment_date)).all()
        hearing_list = hearings.order_by(desc(Hearing.hearing_date)).all()

        # Lawyers earn their share; admins and clients see what was collected
        if actor.is_lawyer:
            revenue = sum((Decimal(p.lawyer_share) for p in payment_list), Decimal("0"))
        else:
            revenue = sum((Decimal(p.amount) for p in payment_list), Decimal("0"))

        return Report(
            report_type=report_type,
            start_date=start,
            end_date=end,
            total_cases=len(case_list),
            new_cases=sum(1 for c in case_list if c.status == CaseStatus.PENDING),
            closed_cases=sum(1 for c in case_list if c.status == CaseStatus.CLOSED),
            total_revenue=revenue.quantize(Decimal("0.01")),
            cases=case_list,
            payments=payment_list,
            hearings=hearing_list,
        )
