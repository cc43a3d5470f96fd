from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from lawfirm.actor import Actor
from lawfirm.database import get_db
from lawfirm.models import UserRole
from lawfirm.auth.dependencies import require_admin
from lawfirm.auth.schemas import MessageResponse, UserResponse
from lawfirm.cases.schemas import CaseListResponse, ReminderResult
from lawfirm.registrations.schemas import (
    PendingUserResponse, RejectRequest, LawyerCreate, UserUpdate, AdminCreate, AdminBootstrap
)
from lawfirm.services.case_service import CaseService
from lawfirm.services.document_service import FileStorage
from lawfirm.services.email_service import get_email_sender
from lawfirm.services.hearing_service import HearingService
from lawfirm.services.notification_service import NotificationDispatcher
from lawfirm.services.payment_service import PaymentService
from lawfirm.services.registration_service import RegistrationService

router = APIRouter(prefix="/admin", tags=["Admin Tools"])

# =====================================================
# ADMIN ACCOUNTS
# =====================================================

@router.post("/bootstrap", response_model=UserResponse, status_code=201)
def bootstrap_admin(payload: AdminBootstrap, db: Session = Depends(get_db)):
    """Create the first admin of a fresh installation."""
    return RegistrationService(db).register_admin(
        payload.email, payload.password, payload.full_name, setup_token=payload.setup_token
    )

@router.post("/admins", response_model=UserResponse, status_code=201)
def create_admin(
    payload: AdminCreate,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db).register_admin(payload.email, payload.password, payload.full_name, actor=actor)

# =====================================================
# REGISTRATION REQUESTS
# =====================================================

@router.get("/pending", response_model=List[PendingUserResponse])
def get_pending_registrations(
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db, email_sender=get_email_sender()).list_pending(actor)

@router.post("/pending/{pending_id}/approve", response_model=UserResponse)
def approve_registration(
    pending_id: str,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db, email_sender=get_email_sender()).approve(actor, pending_id)

@router.post("/pending/{pending_id}/reject", response_model=PendingUserResponse)
def reject_registration(
    pending_id: str,
    payload: RejectRequest,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db, email_sender=get_email_sender()).reject(actor, pending_id, payload.reason)

# =====================================================
# USERS
# =====================================================

@router.post("/lawyers", response_model=UserResponse, status_code=201)
def create_lawyer(
    payload: LawyerCreate,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db, email_sender=get_email_sender()).create_lawyer(actor, **payload.dict())

@router.get("/users", response_model=List[UserResponse])
def get_all_users(
    role: Optional[UserRole] = None,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db).list_users(actor, role)

@router.patch("/users/{user_id}", response_model=UserResponse)
def edit_user(
    user_id: str,
    payload: UserUpdate,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return RegistrationService(db).edit_user(actor, user_id, **payload.dict(exclude_unset=True))

@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Delete an account with its closed or rejected, unpaid cases."""
    removed_files = RegistrationService(db).delete_user(actor, user_id)
    storage = FileStorage()
    for path in removed_files:
        await storage.delete(path)
    return {"message": "User deleted"}

@router.get("/lawyers/{lawyer_id}/cases", response_model=List[CaseListResponse])
def get_lawyer_case_history(
    lawyer_id: str,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return CaseService(db).lawyer_case_history(actor, lawyer_id)

# =====================================================
# FINANCE & SCHEDULING
# =====================================================

@router.get("/payments")
def get_payments_dashboard(
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    service = PaymentService(db)
    return {
        "summary": service.summary(actor),
        "payments": [service.payment_view(actor, p) for p in service.history(actor)],
    }

@router.post("/hearings/send-reminders", response_model=ReminderResult)
async def send_hearing_reminders(
    background_tasks: BackgroundTasks,
    within_hours: int = Query(24, ge=1, le=168),
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    sent = HearingService(db, notifier).send_due_reminders(within_hours=within_hours)
    background_tasks.add_task(notifier.deliver)
    return {"reminders_sent": sent}
