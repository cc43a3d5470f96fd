"""
Case status transitions.

    Pending --accept--> Active --close--> Closed
       |                  ^                 |
       +--reject--> Rejected   +--reopen----+

Rejected has no outgoing transition. Closing needs at least
``MIN_HEARINGS_TO_CLOSE`` hearings and stamps ``end_date``; every other
target clears it.
"""

from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session

from lawfirm import config
from lawfirm.actor import Actor
from lawfirm.exceptions import AccessDenied, BusinessRuleRejection, ValidationRejection
from lawfirm.models import Case, CaseStatus, Hearing, PaymentStatus
from lawfirm.services.case_service import ensure_can_manage, get_case_or_404
from lawfirm.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

TRANSITIONS = {
    CaseStatus.PENDING: {CaseStatus.ACTIVE, CaseStatus.REJECTED},
    CaseStatus.ACTIVE: {CaseStatus.CLOSED},
    CaseStatus.CLOSED: {CaseStatus.ACTIVE},
    CaseStatus.REJECTED: set(),
}


def hearing_count(db: Session, case_id: str) -> int:
    return db.query(Hearing).filter(Hearing.case_id == case_id).count()


def ensure_not_closed(case: Case):
    if case.status == CaseStatus.CLOSED:
        raise BusinessRuleRejection("Action not allowed: case is closed.")


def lock_open_case(db: Session, actor: Actor, case_id: str) -> Case:
    """Load a case for changing its hearings or documents.

    The row lock is the one ``update_status`` takes, so a case cannot close
    while its hearings are being changed.
    """
    case = get_case_or_404(db, case_id, for_update=True)
    try:
        ensure_can_manage(case, actor)
        ensure_not_closed(case)
    except (AccessDenied, BusinessRuleRejection):
        db.rollback()
        raise
    return case


class CaseLifecycle:
    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)

    def _load_for_lawyer(self, actor: Actor, case_id: str) -> Case:
        case = get_case_or_404(self.db, case_id, for_update=True)
        if not (actor.is_lawyer and case.lawyer_id == actor.user_id):
            self.db.rollback()
            raise AccessDenied("Only the assigned lawyer can respond to this case")
        return case

    def _check_advance_paid(self, case: Case):
        if case.payment_status == PaymentStatus.UNPAID:
            self.db.rollback()
            raise BusinessRuleRejection(
                "Cannot accept this case yet: the client has not paid the advance payment."
            )

    def _announce_activation(self, case: Case, actor: Actor):
        by_lawyer = actor.user_id == case.lawyer_id
        self.notifier.notify_user(
            case.client_id,
            "Case Accepted",
            f"Your case <strong>{case.title}</strong> has been accepted by your lawyer and is now active."
        )
        self.notifier.notify_admins(
            "Case Accepted",
            f"Case <strong>{case.title}</strong> ({case.case_type}) was accepted "
            f"{'by the assigned lawyer' if by_lawyer else 'by an admin'}."
        )
        self.notifier.notify_user(
            case.lawyer_id,
            "Case Activated",
            f"You accepted case <strong>{case.title}</strong>. It is now active." if by_lawyer
            else f"Case <strong>{case.title}</strong> assigned to you is now active."
        )

    def accept(self, actor: Actor, case_id: str) -> Case:
        case = self._load_for_lawyer(actor, case_id)
        if case.status != CaseStatus.PENDING:
            self.db.rollback()
            raise BusinessRuleRejection(f"Only pending cases can be accepted (current status: {case.status.value}).")
        self._check_advance_paid(case)

        case.status = CaseStatus.ACTIVE
        case.end_date = None
        self._announce_activation(case, actor)

        self.db.commit()
        self.db.refresh(case)
        logger.info(f"Case {case.id} accepted by lawyer {actor.user_id}")
        return case

    def reject(self, actor: Actor, case_id: str) -> Case:
        case = self._load_for_lawyer(actor, case_id)
        if case.status != CaseStatus.PENDING:
            self.db.rollback()
            raise BusinessRuleRejection(f"Only pending cases can be rejected (current status: {case.status.value}).")

        case.status = CaseStatus.REJECTED
        case.end_date = None

        self.notifier.notify_admins(
            "Action Required: Case Rejected",
            f"The lawyer declined case <strong>{case.title}</strong> ({case.case_type}). Please reassign it."
        )
        self.notifier.notify_user(
            case.client_id,
            "Case Declined",
            f"Your case <strong>{case.title}</strong> was declined by the assigned lawyer. "
            f"The firm will contact you about reassignment."
        )
        self.notifier.notify_user(
            actor.user_id,
            "Case Rejected",
            f"You rejected case <strong>{case.title}</strong>. The admins have been informed."
        )

        self.db.commit()
        self.db.refresh(case)
        logger.info(f"Case {case.id} rejected by lawyer {actor.user_id}")
        return case

    def update_status(self, actor: Actor, case_id: str, new_status: CaseStatus) -> Case:
        case = get_case_or_404(self.db, case_id, for_update=True)
        try:
            ensure_can_manage(case, actor)
        except AccessDenied:
            self.db.rollback()
            raise

        current = case.status
        if new_status == current:
            self.db.rollback()
            raise ValidationRejection(f"Case is already {current.value}.")
        if new_status not in TRANSITIONS[current]:
            self.db.rollback()
            raise BusinessRuleRejection(f"Cannot change case status from {current.value} to {new_status.value}.")

        if current == CaseStatus.PENDING and new_status == CaseStatus.ACTIVE:
            self._check_advance_paid(case)

        if new_status == CaseStatus.CLOSED:
            held = hearing_count(self.db, case.id)
            required = config.MIN_HEARINGS_TO_CLOSE
            if held < required:
                self.db.rollback()
                raise BusinessRuleRejection(
                    f"Cannot close case: {held} hearing(s) recorded, at least {required} required."
                )
            case.end_date = datetime.utcnow()
        else:
            case.end_date = None

        case.status = new_status

        if current == CaseStatus.PENDING and new_status == CaseStatus.ACTIVE:
            self._announce_activation(case, actor)
        else:
            self.notifier.notify_user(
                case.client_id,
                "Case Status Updated",
                f"Your case <strong>{case.title}</strong> is now {new_status.value}."
            )

        self.db.commit()
        self.db.refresh(case)
        logger.info(f"Case {case.id} moved {current.value} -> {new_status.value} by {actor.user_id}")
        return case
