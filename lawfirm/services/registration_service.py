from datetime import datetime
from typing import List, Optional
import logging
import secrets

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session, joinedload

from lawfirm import config
from lawfirm.actor import Actor
from lawfirm.auth.utils import generate_temporary_password, get_password_hash
from lawfirm.exceptions import AccessDenied, BusinessRuleRejection, NotFound, ValidationRejection
from lawfirm.models import (
    ACTIVE_WORKLOAD_STATUSES, Case, CaseDocument, Hearing, NotificationItem, Payment, PaymentSession,
    PendingUser, User, UserProfile, UserRole
)
from lawfirm.services.email_service import SmtpEmailSender
from lawfirm.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _require_admin(actor: Actor):
    if not actor.is_admin:
        raise AccessDenied("Only admins can manage accounts")


class RegistrationService:
    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        email_sender: Optional[SmtpEmailSender] = None
    ):
        self.db = db
        self.notifier = notifier or NotificationDispatcher(db)
        self.email_sender = email_sender or SmtpEmailSender()

    # =====================================================
    # SELF-SERVICE REQUESTS
    # =====================================================

    def _pending_exists(self, email: str) -> bool:
        return self.db.query(PendingUser).filter(
            PendingUser.email == email,
            PendingUser.is_processed == False
        ).first() is not None

    def _account_exists(self, email: str) -> bool:
        return self.db.query(User).filter(User.email == email).first() is not None

    def _check_duplicates(self, email: str):
        checks = [
            (self._pending_exists, "This email is already submitted for approval."),
            (self._account_exists, "Account already exists with this email."),
        ]
        if config.REGISTRATION_DUPLICATE_CHECK_ORDER == "account_first":
            checks.reverse()
        for exists, message in checks:
            if exists(email):
                raise BusinessRuleRejection(message)

    def submit(
        self,
        full_name: str,
        email: str,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        additional_info: Optional[str] = None,
        role: UserRole = UserRole.CLIENT,
        specialization: Optional[str] = None,
    ) -> PendingUser:
        email = _normalize_email(email)
        if not full_name or not full_name.strip():
            raise ValidationRejection("Full name is required")
        if not email:
            raise ValidationRejection("Email is required")
        if role == UserRole.ADMIN:
            raise ValidationRejection("Admin accounts cannot be requested")
        if role == UserRole.LAWYER and not (specialization or "").strip():
            raise ValidationRejection("Lawyers must state a specialization")

        self._check_duplicates(email)

        pending = PendingUser(
            full_name=full_name.strip(),
            email=email,
            phone=phone,
            address=address,
            additional_info=additional_info,
            role=role,
            specialization=specialization.strip() if specialization else None,
            requested_at=datetime.utcnow(),
            is_processed=False,
        )
        self.db.add(pending)
        self.notifier.notify_admins("New Registration", f"{pending.full_name} has requested to join.")
        self.db.commit()
        self.db.refresh(pending)
        logger.info(f"Registration request {pending.id} received for {email}")

        if config.ADMIN_NOTIFY_EMAIL:
            self.email_sender.send(
                config.ADMIN_NOTIFY_EMAIL,
                "New Registration Request",
                f"<p>{pending.full_name} ({email}) wants to join as {role.value}.</p>"
                f"<p><a href='{config.FRONTEND_URL}/admin/pending'>Review pending requests</a></p>"
            )
        return pending

    # =====================================================
    # ADMIN DECISIONS
    # =====================================================

    def list_pending(self, actor: Actor) -> List[PendingUser]:
        _require_admin(actor)
        return self.db.query(PendingUser).filter(
            PendingUser.is_processed == False
        ).order_by(desc(PendingUser.requested_at)).all()

    def _get_unprocessed(self, pending_id: str) -> PendingUser:
        pending = self.db.query(PendingUser).filter(PendingUser.id == pending_id).with_for_update().first()
        if not pending:
            raise NotFound("Registration request not found")
        if pending.is_processed:
            self.db.rollback()
            raise BusinessRuleRejection("This registration request was already processed.")
        return pending

    def _create_account(
        self,
        email: str,
        role: UserRole,
        full_name: str,
        password: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        additional_info: Optional[str] = None,
        specialization: Optional[str] = None,
        date_of_joining: Optional[datetime] = None,
    ):
        temp_password = password or generate_temporary_password()
        user = User(
            email=email,
            password_hash=get_password_hash(temp_password),
            role=role,
            is_active=True,
        )
        self.db.add(user)
        self.db.flush()
        self.db.add(UserProfile(
            user_id=user.id,
            full_name=full_name,
            role=role,
            phone=phone,
            address=address,
            additional_info=additional_info,
            specialization=specialization,
            date_of_joining=date_of_joining,
        ))
        return user, temp_password

    def approve(self, actor: Actor, pending_id: str) -> User:
        _require_admin(actor)
        pending = self._get_unprocessed(pending_id)
        if self._account_exists(pending.email):
            self.db.rollback()
            raise BusinessRuleRejection("Account already exists with this email.")

        user, temp_password = self._create_account(
            email=pending.email,
            role=pending.role,
            full_name=pending.full_name,
            phone=pending.phone,
            address=pending.address,
            additional_info=pending.additional_info,
            specialization=pending.specialization,
            date_of_joining=datetime.utcnow() if pending.role == UserRole.LAWYER else None,
        )
        pending.is_processed = True
        pending.admin_note = "Approved"
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Registration {pending.id} approved, user {user.id} created")

        self.email_sender.send(
            user.email,
            "Your account has been approved",
            f"<h2>Welcome {pending.full_name}</h2>"
            f"<p>Login: {user.email}</p><p>Temporary password: {temp_password}</p>"
            f"<p>Please change it after your first login.</p>"
        )
        return user

    def reject(self, actor: Actor, pending_id: str, reason: str = "") -> PendingUser:
        _require_admin(actor)
        pending = self._get_unprocessed(pending_id)
        pending.is_processed = True
        pending.admin_note = (reason or "").strip() or "Rejected"
        self.db.commit()
        self.db.refresh(pending)
        logger.info(f"Registration {pending.id} rejected")

        self.email_sender.send(
            pending.email,
            "Your registration request",
            f"<p>Dear {pending.full_name},</p><p>Your registration request was not approved.</p>"
            f"<p>Reason: {pending.admin_note}</p>"
        )
        return pending

    def create_lawyer(
        self,
        actor: Actor,
        email: str,
        full_name: str,
        specialization: str,
        phone: Optional[str] = None,
        date_of_joining: Optional[datetime] = None,
    ) -> User:
        _require_admin(actor)
        email = _normalize_email(email)
        if not full_name or not full_name.strip():
            raise ValidationRejection("Full name is required")
        if not specialization or not specialization.strip():
            raise ValidationRejection("Specialization is required")
        if self._account_exists(email):
            raise BusinessRuleRejection("Account already exists with this email.")

        user, temp_password = self._create_account(
            email=email,
            role=UserRole.LAWYER,
            full_name=full_name.strip(),
            phone=phone,
            specialization=specialization.strip(),
            date_of_joining=date_of_joining or datetime.utcnow(),
        )
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Lawyer account {user.id} created ({specialization})")

        self.email_sender.send(
            email,
            "Welcome to the firm",
            f"<h1>Welcome {full_name}</h1><p>Login: {email}</p><p>Password: {temp_password}</p>"
        )
        return user

    def register_admin(
        self,
        email: str,
        password: str,
        full_name: str,
        actor: Optional[Actor] = None,
        setup_token: Optional[str] = None,
    ) -> User:
        """Create an admin account.

        Admins may add further admins. Without an admin actor this only works
        while the firm has no admin yet, and needs ``ADMIN_SETUP_TOKEN`` when
        one is configured.
        """
        if actor is not None:
            _require_admin(actor)
        else:
            expected = config.ADMIN_SETUP_TOKEN
            if expected and not secrets.compare_digest(setup_token or "", expected):
                raise AccessDenied("Invalid setup token")
            if self.db.query(User).filter(User.role == UserRole.ADMIN).first():
                raise BusinessRuleRejection("An admin account already exists. Ask an admin to add you.")

        email = _normalize_email(email)
        if not email:
            raise ValidationRejection("Email is required")
        if not full_name or not full_name.strip():
            raise ValidationRejection("Full name is required")
        if not password or len(password) < 8:
            raise ValidationRejection("Password must be at least 8 characters")
        if self._account_exists(email):
            raise BusinessRuleRejection("Account already exists with this email.")

        user, _ = self._create_account(email=email, role=UserRole.ADMIN, full_name=full_name.strip(), password=password)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Admin account {user.id} created{' by ' + actor.user_id if actor else ' during setup'}")
        return user

    # =====================================================
    # USER ADMINISTRATION
    # =====================================================

    def list_users(self, actor: Actor, role: Optional[UserRole] = None) -> List[User]:
        _require_admin(actor)
        query = self.db.query(User).options(joinedload(User.profile))
        if role:
            query = query.filter(User.role == role)
        return query.order_by(desc(User.created_at)).all()

    def edit_user(
        self,
        actor: Actor,
        user_id: str,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
        specialization: Optional[str] = None,
        date_of_joining: Optional[datetime] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        _require_admin(actor)
        user = self.db.query(User).filter(User.id == user_id).first()
        profile = self.db.query(UserProfile).filter(UserProfile.user_id == user_id).first()
        if not user or not profile:
            raise NotFound("User not found")

        if email is not None:
            email = _normalize_email(email)
            if email != user.email and self._account_exists(email):
                raise BusinessRuleRejection("Account already exists with this email.")
            user.email = email
        if full_name is not None:
            if not full_name.strip():
                raise ValidationRejection("Full name cannot be empty")
            profile.full_name = full_name.strip()
        if phone is not None:
            profile.phone = phone
        if is_active is not None:
            if user.id == actor.user_id and not is_active:
                raise BusinessRuleRejection("You cannot deactivate your own account.")
            user.is_active = is_active

        # Lawyer fields are ignored for everybody else
        if user.role == UserRole.LAWYER:
            if specialization is not None:
                profile.specialization = specialization.strip()
            if date_of_joining is not None:
                profile.date_of_joining = date_of_joining

        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, actor: Actor, user_id: str) -> List[str]:
        """Remove an account together with its finished, unpaid cases.

        Accounts tied to a Pending or Active case, or to any case with a
        recorded payment, are refused; deactivate those instead. Returns the
        stored paths of removed case documents so the caller can delete them.
        """
        _require_admin(actor)
        if user_id == actor.user_id:
            raise BusinessRuleRejection("You cannot delete your own account.")
        user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
        if not user:
            raise NotFound("User not found")

        cases = self.db.query(Case).filter(
            or_(Case.client_id == user_id, Case.lawyer_id == user_id)
        ).with_for_update().all()
        case_ids = [c.id for c in cases]

        if any(c.status in ACTIVE_WORKLOAD_STATUSES for c in cases):
            self.db.rollback()
            raise BusinessRuleRejection("This user has pending or active cases. Close or reject them first.")
        if case_ids and self.db.query(Payment).filter(Payment.case_id.in_(case_ids)).first():
            self.db.rollback()
            raise BusinessRuleRejection(
                "This user has cases with recorded payments and cannot be deleted. Deactivate the account instead."
            )

        removed_files = []
        if case_ids:
            documents = self.db.query(CaseDocument).filter(CaseDocument.case_id.in_(case_ids)).all()
            removed_files = [d.file_path for d in documents]
            for model in (CaseDocument, Hearing, PaymentSession):
                self.db.query(model).filter(model.case_id.in_(case_ids)).delete(synchronize_session=False)
            for case in cases:
                self.db.delete(case)

        self.db.query(NotificationItem).filter(NotificationItem.for_user_id == user_id).delete(synchronize_session=False)
        self.db.query(UserProfile).filter(UserProfile.user_id == user_id).delete(synchronize_session=False)
        self.db.query(PendingUser).filter(PendingUser.email == user.email).delete(synchronize_session=False)
        self.db.delete(user)
        self.db.commit()
        logger.info(f"User {user_id} deleted by {actor.user_id} with {len(cases)} case(s)")
        return removed_files
