from datetime import datetime, timedelta, timezone
from typing import List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lawfirm.actor import Actor
from lawfirm.exceptions import BusinessRuleRejection, NotFound, ValidationRejection
from lawfirm.models import Case, Hearing
from lawfirm.services.case_lifecycle import lock_open_case
from lawfirm.services.case_service import ensure_can_view, get_case_or_404
from lawfirm.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Scheduling conflict: the lawyer or the client already has a hearing at {when}."


def normalize_hearing_date(value: datetime) -> datetime:
    """Store hearing times as naive UTC so equal instants compare equal."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


class HearingService:
    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)

    def _get_hearing(self, hearing_id: str) -> Hearing:
        hearing = self.db.query(Hearing).filter(Hearing.id == hearing_id).first()
        if not hearing:
            raise NotFound("Hearing not found")
        return hearing

    def find_conflict(self, case: Case, hearing_date: datetime, exclude_id: Optional[str] = None) -> Optional[Hearing]:
        query = self.db.query(Hearing).filter(
            Hearing.hearing_date == hearing_date,
            or_(Hearing.lawyer_id == case.lawyer_id, Hearing.client_id == case.client_id)
        )
        if exclude_id:
            query = query.filter(Hearing.id != exclude_id)
        return query.first()

    def _validate(self, court_name: str):
        problem = None
        if not court_name or not court_name.strip():
            problem = "Court name is required"
        elif len(court_name) > 150:
            problem = "Court name must be at most 150 characters"
        if problem:
            self.db.rollback()
            raise ValidationRejection(problem)

    def _reject_conflict(self, when: datetime):
        self.db.rollback()
        raise BusinessRuleRejection(CONFLICT_MESSAGE.format(when=when.isoformat(sep=" ")))

    def _flush_or_conflict(self, when: datetime):
        # Unique slot constraints catch a conflicting insert that raced past find_conflict
        try:
            self.db.flush()
        except IntegrityError:
            self._reject_conflict(when)

    def add_hearing(self, actor: Actor, case_id: str, hearing_date: datetime, court_name: str, notes: str = "") -> Hearing:
        case = lock_open_case(self.db, actor, case_id)
        self._validate(court_name)

        hearing_date = normalize_hearing_date(hearing_date)
        if self.find_conflict(case, hearing_date):
            self._reject_conflict(hearing_date)

        hearing = Hearing(
            case_id=case.id,
            hearing_date=hearing_date,
            court_name=court_name.strip(),
            notes=notes or "",
            reminder_sent=False,
            lawyer_id=case.lawyer_id,
            client_id=case.client_id,
        )
        self.db.add(hearing)
        self._flush_or_conflict(hearing_date)

        self.notifier.notify_user(
            case.client_id,
            "Hearing Scheduled",
            f"A hearing for <strong>{case.title}</strong> is scheduled on "
            f"{hearing_date:%d %b %Y %H:%M} at {hearing.court_name}."
        )

        self.db.commit()
        self.db.refresh(hearing)
        logger.info(f"Hearing {hearing.id} scheduled for case {case.id} at {hearing_date}")
        return hearing

    def edit_hearing(self, actor: Actor, hearing_id: str, hearing_date: datetime, court_name: str, notes: str = "") -> Hearing:
        hearing = self._get_hearing(hearing_id)
        case = lock_open_case(self.db, actor, hearing.case_id)
        self._validate(court_name)

        hearing_date = normalize_hearing_date(hearing_date)
        if self.find_conflict(case, hearing_date, exclude_id=hearing.id):
            self._reject_conflict(hearing_date)

        moved = hearing.hearing_date != hearing_date
        hearing.hearing_date = hearing_date
        hearing.court_name = court_name.strip()
        hearing.notes = notes or ""
        if moved:
            hearing.reminder_sent = False
        self._flush_or_conflict(hearing_date)

        if moved:
            self.notifier.notify_user(
                case.client_id,
                "Hearing Rescheduled",
                f"The hearing for <strong>{case.title}</strong> moved to "
                f"{hearing_date:%d %b %Y %H:%M} at {hearing.court_name}."
            )

        self.db.commit()
        self.db.refresh(hearing)
        return hearing

    def delete_hearing(self, actor: Actor, hearing_id: str):
        hearing = self._get_hearing(hearing_id)
        case = lock_open_case(self.db, actor, hearing.case_id)

        self.db.delete(hearing)
        self.db.commit()
        logger.info(f"Hearing {hearing_id} removed from case {case.id}")

    def list_hearings(self, actor: Actor, case_id: str) -> List[Hearing]:
        case = get_case_or_404(self.db, case_id)
        ensure_can_view(case, actor)
        return self.db.query(Hearing).filter(Hearing.case_id == case_id).order_by(Hearing.hearing_date).all()

    def send_due_reminders(self, within_hours: int = 24, now: Optional[datetime] = None) -> int:
        """Notify lawyer and client of hearings starting within the window."""
        now = now or datetime.utcnow()
        due = self.db.query(Hearing).filter(
            Hearing.reminder_sent == False,
            Hearing.hearing_date >= now,
            Hearing.hearing_date <= now + timedelta(hours=within_hours)
        ).all()

        for hearing in due:
            message = (
                f"Reminder: hearing for <strong>{hearing.case.title}</strong> on "
                f"{hearing.hearing_date:%d %b %Y %H:%M} at {hearing.court_name}."
            )
            self.notifier.notify_user(hearing.lawyer_id, "Hearing Reminder", message)
            self.notifier.notify_user(hearing.client_id, "Hearing Reminder", message)
            hearing.reminder_sent = True

        self.db.commit()
        if due:
            logger.info(f"Sent reminders for {len(due)} hearing(s)")
        return len(due)
