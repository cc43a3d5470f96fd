from pathlib import Path
from typing import List, Optional
import logging
import mimetypes
import os
import uuid

import aiofiles
import aiofiles.os
from sqlalchemy import desc
from sqlalchemy.orm import Session

from lawfirm import config
from lawfirm.actor import Actor
from lawfirm.exceptions import NotFound, ValidationRejection
from lawfirm.models import CaseDocument
from lawfirm.services.case_lifecycle import lock_open_case
from lawfirm.services.case_service import ensure_can_view, get_case_or_404
from lawfirm.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    '.pdf', '.doc', '.docx', '.txt', '.rtf',
    '.jpg', '.jpeg', '.png',
    '.xls', '.xlsx'
}


class FileStorage:
    """Stores case files on local disk under generated names."""

    def __init__(self, root: str = config.UPLOAD_DIR):
        self.root = Path(root)

    def path_for(self, logical_path: str) -> Path:
        return self.root / logical_path

    async def save(self, original_name: str, content: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        logical_path = f"{uuid.uuid4()}{Path(original_name).suffix.lower()}"
        async with aiofiles.open(self.path_for(logical_path), 'wb') as f:
            await f.write(content)
        return logical_path

    async def delete(self, logical_path: str):
        target = self.path_for(logical_path)
        if os.path.exists(target):
            await aiofiles.os.remove(target)


class DocumentService:
    def __init__(
        self,
        db: Session,
        storage: Optional[FileStorage] = None,
        notifier: Optional[NotificationDispatcher] = None
    ):
        self.db = db
        self.storage = storage or FileStorage()
        self.notifier = notifier or NotificationDispatcher(db)

    def _get_document(self, document_id: str) -> CaseDocument:
        document = self.db.query(CaseDocument).filter(CaseDocument.id == document_id).first()
        if not document:
            raise NotFound("Document not found")
        return document

    def _check_file(self, file_name: str, content: bytes):
        problem = None
        if not file_name:
            problem = "No file provided"
        elif Path(file_name).suffix.lower() not in ALLOWED_EXTENSIONS:
            problem = f"File type not allowed. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        elif len(content) > config.MAX_UPLOAD_BYTES:
            problem = "File too large"
        if problem:
            self.db.rollback()
            raise ValidationRejection(problem)

    async def upload(self, actor: Actor, case_id: str, file_name: str, content: bytes) -> CaseDocument:
        case = lock_open_case(self.db, actor, case_id)
        self._check_file(file_name, content)

        logical_path = await self.storage.save(file_name, content)
        document = CaseDocument(
            case_id=case.id,
            file_name=Path(file_name).name,
            file_path=logical_path,
            content_type=mimetypes.guess_type(file_name)[0] or 'application/octet-stream',
            file_size=len(content),
            uploaded_by=actor.email or actor.user_id,
        )
        self.db.add(document)
        self.notifier.notify_user(
            case.client_id,
            "New Document",
            f"A document <strong>{document.file_name}</strong> was added to case <strong>{case.title}</strong>."
        )
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            await self.storage.delete(logical_path)
            raise
        self.db.refresh(document)
        logger.info(f"Document {document.id} uploaded to case {case.id}")
        return document

    def list_documents(self, actor: Actor, case_id: str) -> List[CaseDocument]:
        case = get_case_or_404(self.db, case_id)
        ensure_can_view(case, actor)
        return self.db.query(CaseDocument).filter(
            CaseDocument.case_id == case_id
        ).order_by(desc(CaseDocument.uploaded_at)).all()

    def get_document(self, actor: Actor, document_id: str) -> CaseDocument:
        document = self._get_document(document_id)
        ensure_can_view(document.case, actor)
        return document

    def file_path(self, document: CaseDocument) -> Path:
        path = self.storage.path_for(document.file_path)
        if not path.exists():
            raise NotFound("Stored file is missing")
        return path

    async def delete_document(self, actor: Actor, document_id: str):
        document = self._get_document(document_id)
        lock_open_case(self.db, actor, document.case_id)

        logical_path = document.file_path
        self.db.delete(document)
        self.db.commit()
        await self.storage.delete(logical_path)
