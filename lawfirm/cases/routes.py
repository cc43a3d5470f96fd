from fastapi import APIRouter, BackgroundTasks, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import List, Optional

from lawfirm.actor import Actor
from lawfirm.database import get_db
from lawfirm.models import CaseStatus
from lawfirm.cases.schemas import (
    CaseCreate, CaseStatusUpdate, CaseResponse, CaseListResponse, CaseDetailResponse,
    CaseStats, LawyerWorkload, HearingCreate, HearingResponse, DocumentResponse
)
from lawfirm.auth.dependencies import get_actor, require_admin, require_lawyer, require_lawyer_or_admin
from lawfirm.services.case_service import CaseService
from lawfirm.services.case_lifecycle import CaseLifecycle
from lawfirm.services.hearing_service import HearingService
from lawfirm.services.document_service import DocumentService
from lawfirm.services.notification_service import NotificationDispatcher

router = APIRouter(prefix="/cases", tags=["Cases"])

# =====================================================
# CASE CRUD OPERATIONS
# =====================================================

@router.post("/", response_model=CaseResponse)
async def create_case(
    case_data: CaseCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Assign a new case to a lawyer (admin only)."""
    notifier = NotificationDispatcher(db)
    case = CaseService(db, notifier).create_case(actor, **case_data.dict())
    background_tasks.add_task(notifier.deliver)
    return case

@router.get("/", response_model=List[CaseListResponse])
async def list_cases(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    status: Optional[CaseStatus] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """List the cases visible to the caller."""
    return CaseService(db).list_cases(actor, status=status, skip=skip, limit=limit)

@router.get("/stats", response_model=CaseStats)
async def get_case_stats(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return CaseService(db).get_case_stats(actor)

@router.get("/workloads", response_model=List[LawyerWorkload])
async def get_lawyer_workloads(
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    """Current load of every lawyer, for picking an assignee."""
    return CaseService(db).lawyer_workloads()

@router.get("/{case_id}", response_model=CaseDetailResponse)
async def get_case(
    case_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return CaseService(db).get_case(actor, case_id)

# =====================================================
# CASE LIFECYCLE
# =====================================================

@router.post("/{case_id}/accept", response_model=CaseResponse)
async def accept_case(
    case_id: str,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_lawyer()),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    case = CaseLifecycle(db, notifier).accept(actor, case_id)
    background_tasks.add_task(notifier.deliver)
    return case

@router.post("/{case_id}/reject", response_model=CaseResponse)
async def reject_case(
    case_id: str,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_lawyer()),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    case = CaseLifecycle(db, notifier).reject(actor, case_id)
    background_tasks.add_task(notifier.deliver)
    return case

@router.patch("/{case_id}/status", response_model=CaseResponse)
async def update_case_status(
    case_id: str,
    payload: CaseStatusUpdate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_lawyer_or_admin()),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    case = CaseLifecycle(db, notifier).update_status(actor, case_id, payload.status)
    background_tasks.add_task(notifier.deliver)
    return case

# =====================================================
# HEARINGS
# =====================================================

@router.post("/{case_id}/hearings", response_model=HearingResponse)
async def add_hearing(
    case_id: str,
    payload: HearingCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_lawyer_or_admin()),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    hearing = HearingService(db, notifier).add_hearing(
        actor, case_id, payload.hearing_date, payload.court_name, payload.notes
    )
    background_tasks.add_task(notifier.deliver)
    return hearing

@router.get("/{case_id}/hearings", response_model=List[HearingResponse])
async def list_hearings(
    case_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return HearingService(db).list_hearings(actor, case_id)

@router.put("/hearings/{hearing_id}", response_model=HearingResponse)
async def edit_hearing(
    hearing_id: str,
    payload: HearingCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(require_lawyer_or_admin()),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    hearing = HearingService(db, notifier).edit_hearing(
        actor, hearing_id, payload.hearing_date, payload.court_name, payload.notes
    )
    background_tasks.add_task(notifier.deliver)
    return hearing

@router.delete("/hearings/{hearing_id}")
async def delete_hearing(
    hearing_id: str,
    actor: Actor = Depends(require_lawyer_or_admin()),
    db: Session = Depends(get_db)
):
    HearingService(db).delete_hearing(actor, hearing_id)
    return {"message": "Hearing deleted successfully"}

# =====================================================
# DOCUMENTS
# =====================================================

@router.post("/{case_id}/documents", response_model=DocumentResponse)
async def upload_document(
    case_id: str,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    actor: Actor = Depends(require_lawyer_or_admin()),
    db: Session = Depends(get_db)
):
    content = await file.read()
    notifier = NotificationDispatcher(db)
    document = await DocumentService(db, notifier=notifier).upload(actor, case_id, file.filename, content)
    background_tasks.add_task(notifier.deliver)
    return document

@router.get("/{case_id}/documents", response_model=List[DocumentResponse])
async def list_documents(
    case_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return DocumentService(db).list_documents(actor, case_id)

@router.get("/documents/{document_id}/download")
async def download_document(
    document_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    service = DocumentService(db)
    document = service.get_document(actor, document_id)
    return FileResponse(
        service.file_path(document),
        media_type=document.content_type or "application/octet-stream",
        filename=document.file_name
    )

@router.delete("/documents/{document_id}")
async def delete_document(
    document_id: str,
    actor: Actor = Depends(require_lawyer_or_admin()),
    db: Session = Depends(get_db)
):
    await DocumentService(db).delete_document(actor, document_id)
    return {"message": "Document deleted successfully"}
