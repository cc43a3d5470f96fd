import pytest

from lawfirm.exceptions import AccessDenied, BusinessRuleRejection, ValidationRejection
from lawfirm.models import CaseDocument, CaseStatus, NotificationItem, UserRole
from lawfirm.services import case_lifecycle, document_service
from lawfirm.services.document_service import DocumentService, FileStorage

from conftest import actor_for


@pytest.fixture
def documents(db, tmp_path):
    return DocumentService(db, storage=FileStorage(str(tmp_path)))


@pytest.mark.asyncio
async def test_upload_stores_file_and_notifies_client(db, documents, lawyer, client_user, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    document = await documents.upload(actor_for(lawyer), case.id, "Deed.PDF", b"%PDF-1.4 deed")

    assert document.file_name == "Deed.PDF"
    assert document.file_size == len(b"%PDF-1.4 deed")
    assert document.file_path.endswith(".pdf")
    assert documents.file_path(document).read_bytes() == b"%PDF-1.4 deed"
    note = db.query(NotificationItem).filter(NotificationItem.for_user_id == client_user.id).one()
    assert note.title == "New Document"


@pytest.mark.asyncio
async def test_disallowed_extension(documents, lawyer, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    with pytest.raises(ValidationRejection):
        await documents.upload(actor_for(lawyer), case.id, "payload.exe", b"MZ")


@pytest.mark.asyncio
async def test_closed_case_rejects_uploads(db, documents, lawyer, make_case):
    case = make_case(status=CaseStatus.CLOSED)

    with pytest.raises(BusinessRuleRejection):
        await documents.upload(actor_for(lawyer), case.id, "notes.txt", b"late filing")
    assert db.query(CaseDocument).count() == 0


@pytest.mark.asyncio
async def test_client_can_list_but_not_upload(documents, lawyer, client_user, make_case):
    case = make_case(status=CaseStatus.ACTIVE)
    await documents.upload(actor_for(lawyer), case.id, "notes.txt", b"hearing notes")

    with pytest.raises(AccessDenied):
        await documents.upload(actor_for(client_user), case.id, "mine.txt", b"x")
    assert [d.file_name for d in documents.list_documents(actor_for(client_user), case.id)] == ["notes.txt"]


@pytest.mark.asyncio
async def test_other_clients_cannot_download(documents, lawyer, make_user, make_case):
    case = make_case(status=CaseStatus.ACTIVE)
    document = await documents.upload(actor_for(lawyer), case.id, "notes.txt", b"private")
    stranger = make_user(UserRole.CLIENT)

    with pytest.raises(AccessDenied):
        documents.get_document(actor_for(stranger), document.id)


@pytest.mark.asyncio
async def test_delete_removes_row_and_file(db, documents, lawyer, make_case):
    case = make_case(status=CaseStatus.ACTIVE)
    document = await documents.upload(actor_for(lawyer), case.id, "notes.txt", b"draft")
    stored = documents.storage.path_for(document.file_path)

    await documents.delete_document(actor_for(lawyer), document.id)

    assert db.query(CaseDocument).count() == 0
    assert not stored.exists()


@pytest.mark.asyncio
async def test_document_changes_lock_the_case_row(documents, lawyer, make_case, monkeypatch):
    case = make_case(status=CaseStatus.ACTIVE)
    locked = []

    def recording_lock(session, actor, case_id):
        locked.append(case_id)
        return case_lifecycle.lock_open_case(session, actor, case_id)

    monkeypatch.setattr(document_service, "lock_open_case", recording_lock)

    document = await documents.upload(actor_for(lawyer), case.id, "notes.txt", b"draft")
    await documents.delete_document(actor_for(lawyer), document.id)

    assert locked == [case.id, case.id]
