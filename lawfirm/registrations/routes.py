from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from lawfirm.database import get_db
from lawfirm.registrations.schemas import RegistrationRequest, PendingUserResponse
from lawfirm.services.email_service import get_email_sender
from lawfirm.services.notification_service import NotificationDispatcher
from lawfirm.services.registration_service import RegistrationService

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.post("/", response_model=PendingUserResponse, status_code=201)
async def submit_registration(
    payload: RegistrationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """Ask the firm for an account. An admin approves or rejects it later."""
    notifier = NotificationDispatcher(db)
    pending = RegistrationService(db, notifier, get_email_sender()).submit(**payload.dict())
    background_tasks.add_task(notifier.deliver)
    return pending
