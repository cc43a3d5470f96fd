from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, desc
from typing import List, Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
import logging

from lawfirm import config
from lawfirm.actor import Actor
from lawfirm.exceptions import AccessDenied, BusinessRuleRejection, NotFound, ValidationRejection
from lawfirm.models import (
    ACTIVE_WORKLOAD_STATUSES, Case, CaseStatus, PaymentStatus, User, UserProfile, UserRole
)
from lawfirm.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

# Fees are fixed per case type so nobody can price a case at creation time.
CASE_FEES = {
    "civil": Decimal("50000"),
    "criminal": Decimal("80000"),
    "family": Decimal("30000"),
    "corporate": Decimal("120000"),
    "property": Decimal("60000"),
}


def fixed_fee_for(case_type: str) -> Decimal:
    return CASE_FEES.get((case_type or "").strip().lower(), Decimal("0"))


def get_case_or_404(db: Session, case_id: str, for_update: bool = False) -> Case:
    query = db.query(Case).filter(Case.id == case_id)
    if for_update:
        query = query.with_for_update()
    case = query.first()
    if not case:
        raise NotFound("Case not found")
    return case


def can_view_case(case: Case, actor: Actor) -> bool:
    if actor.is_admin:
        return True
    if actor.is_lawyer:
        return case.lawyer_id == actor.user_id
    return case.client_id == actor.user_id


def ensure_can_view(case: Case, actor: Actor):
    if not can_view_case(case, actor):
        raise AccessDenied("Access denied")


def ensure_can_manage(case: Case, actor: Actor):
    """Only the assigned lawyer or an admin may change a case."""
    if actor.is_admin:
        return
    if actor.is_lawyer and case.lawyer_id == actor.user_id:
        return
    raise AccessDenied("Only the assigned lawyer or an admin can modify this case")


class CaseService:
    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)

    # =====================================================
    # ASSIGNMENT
    # =====================================================

    def active_case_count(self, lawyer_id: str) -> int:
        return self.db.query(Case).filter(
            Case.lawyer_id == lawyer_id,
            Case.status.in_(ACTIVE_WORKLOAD_STATUSES)
        ).count()

    def create_case(
        self,
        actor: Actor,
        title: str,
        case_type: str,
        description: str,
        client_id: str,
        lawyer_id: str,
        admin_share_percentage: Optional[Decimal] = None,
    ) -> Case:
        """Create a case after the specialization and workload checks."""
        if not actor.is_admin:
            raise AccessDenied("Only admins can create cases")

        if admin_share_percentage is None:
            admin_share_percentage = config.DEFAULT_ADMIN_SHARE_PERCENT
        admin_share_percentage = Decimal(str(admin_share_percentage))
        if admin_share_percentage < 0 or admin_share_percentage > 100:
            raise ValidationRejection("Admin share percentage must be between 0 and 100")

        client = self.db.query(User).filter(User.id == client_id, User.role == UserRole.CLIENT).first()
        if not client:
            raise NotFound("Selected client not found")

        # Serializes concurrent assignments to the same lawyer until commit
        lawyer = self.db.query(User).filter(
            User.id == lawyer_id, User.role == UserRole.LAWYER
        ).with_for_update().first()
        profile = None
        if lawyer:
            profile = self.db.query(UserProfile).filter(UserProfile.user_id == lawyer_id).first()
        if not profile:
            self.db.rollback()
            raise NotFound("Selected lawyer profile not found.")

        specialization = profile.specialization or ""
        if specialization.strip().lower() != (case_type or "").strip().lower():
            self.db.rollback()
            raise BusinessRuleRejection(
                f"Mismatch! This case is '{case_type}', but Lawyer specializes in '{specialization}'."
            )

        active_cases = self.active_case_count(lawyer_id)
        limit = config.MAX_ACTIVE_CASES_PER_LAWYER
        if active_cases >= limit:
            self.db.rollback()
            raise BusinessRuleRejection(
                f"Overloaded! Lawyer already has {active_cases} active cases. Max limit is {limit}."
            )

        db_case = Case(
            title=title,
            case_type=case_type,
            description=description,
            client_id=client_id,
            lawyer_id=lawyer_id,
            status=CaseStatus.PENDING,
            start_date=datetime.utcnow(),
            total_fee=fixed_fee_for(case_type),
            payment_status=PaymentStatus.UNPAID,
            admin_share_percentage=admin_share_percentage,
        )
        self.db.add(db_case)
        self.db.flush()

        self.notifier.notify_user(
            lawyer_id,
            "New Case Assigned",
            f"You have been assigned to case: <strong>{title}</strong> ({case_type}). Please accept it."
        )

        self.db.commit()
        self.db.refresh(db_case)
        logger.info(f"Case {db_case.id} assigned to lawyer {lawyer_id} ({active_cases + 1}/{limit})")
        return db_case

    def lawyer_workloads(self) -> List[Dict[str, Any]]:
        """Every lawyer with their current load, for picking an assignee."""
        counts = dict(
            self.db.query(Case.lawyer_id, func.count(Case.id))
            .filter(Case.status.in_(ACTIVE_WORKLOAD_STATUSES))
            .group_by(Case.lawyer_id)
            .all()
        )
        profiles = self.db.query(UserProfile).filter(UserProfile.role == UserRole.LAWYER).all()
        limit = config.MAX_ACTIVE_CASES_PER_LAWYER
        return [
            {
                "lawyer_id": p.user_id,
                "full_name": p.full_name,
                "specialization": p.specialization,
                "active_cases": counts.get(p.user_id, 0),
                "max_cases": limit,
                "is_full": counts.get(p.user_id, 0) >= limit,
            }
            for p in profiles
        ]

    # =====================================================
    # QUERIES
    # =====================================================

    def _scoped_query(self, actor: Actor):
        query = self.db.query(Case)
        if actor.is_client:
            query = query.filter(Case.client_id == actor.user_id)
        elif actor.is_lawyer:
            query = query.filter(Case.lawyer_id == actor.user_id)
        return query

    def get_case(self, actor: Actor, case_id: str) -> Case:
        case = self.db.query(Case).options(
            joinedload(Case.client),
            joinedload(Case.lawyer)
        ).filter(Case.id == case_id).first()
        if not case:
            raise NotFound("Case not found")
        ensure_can_view(case, actor)
        return case

    def list_cases(
        self,
        actor: Actor,
        status: Optional[CaseStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Case]:
        query = self._scoped_query(actor)
        if status:
            query = query.filter(Case.status == status)
        return query.order_by(desc(Case.start_date)).offset(skip).limit(limit).all()

    def lawyer_case_history(self, actor: Actor, lawyer_id: str) -> List[Case]:
        if not actor.is_admin:
            raise AccessDenied("Only admins can view a lawyer's case history")
        lawyer = self.db.query(User).filter(User.id == lawyer_id, User.role == UserRole.LAWYER).first()
        if not lawyer:
            raise NotFound("Lawyer not found")
        return self.db.query(Case).filter(Case.lawyer_id == lawyer_id).order_by(desc(Case.start_date)).all()

    def get_case_stats(self, actor: Actor) -> Dict[str, Any]:
        base_query = self._scoped_query(actor)

        status_stats = base_query.with_entities(
            Case.status, func.count(Case.id)
        ).group_by(Case.status).all()
        by_status = {status.value: count for status, count in status_stats}

        type_stats = base_query.with_entities(
            Case.case_type, func.count(Case.id)
        ).group_by(Case.case_type).all()
        by_type = {str(case_type): count for case_type, count in type_stats}

        return {
            "total_cases": sum(by_status.values()),
            "open_cases": by_status.get(CaseStatus.PENDING.value, 0) + by_status.get(CaseStatus.ACTIVE.value, 0),
            "closed_cases": by_status.get(CaseStatus.CLOSED.value, 0),
            "by_status": by_status,
            "by_type": by_type,
        }
