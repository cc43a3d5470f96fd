from decimal import Decimal

import pytest

from lawfirm.admin import routes as admin_routes
from lawfirm.exceptions import GatewayFailure
from lawfirm.models import CaseStatus, PaymentStatus, User, UserRole

from conftest import TEST_PASSWORD, auth_headers


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_login_and_me(client, lawyer):
    response = await client.post("/auth/login", data={"username": lawyer.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "Lawyer"
    assert me.json()["profile"]["specialization"] == "Civil"


@pytest.mark.asyncio
async def test_login_rejects_wrong_password(client, lawyer):
    response = await client.post("/auth/login", data={"username": lawyer.email, "password": "nope"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_requests_without_token_are_refused(client):
    response = await client.get("/cases/")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_admin_creates_case(client, admin, lawyer, client_user):
    response = await client.post("/cases/", headers=auth_headers(admin), json={
        "title": "Boundary dispute",
        "case_type": "Civil",
        "description": "Neighbour moved the fence",
        "client_id": client_user.id,
        "lawyer_id": lawyer.id,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "Pending"
    assert body["payment_status"] == "Unpaid"
    assert Decimal(body["total_fee"]) == Decimal("50000")


@pytest.mark.asyncio
async def test_business_rule_rejection_maps_to_409(client, admin, lawyer, client_user):
    response = await client.post("/cases/", headers=auth_headers(admin), json={
        "title": "Theft charge",
        "case_type": "Criminal",
        "description": "Defence",
        "client_id": client_user.id,
        "lawyer_id": lawyer.id,
    })

    assert response.status_code == 409
    assert response.json()["detail"].startswith("Mismatch!")


@pytest.mark.asyncio
async def test_clients_cannot_create_cases(client, lawyer, client_user):
    response = await client.post("/cases/", headers=auth_headers(client_user), json={
        "title": "Self assigned",
        "case_type": "Civil",
        "description": "x",
        "client_id": client_user.id,
        "lawyer_id": lawyer.id,
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_case_is_404(client, admin):
    response = await client.get("/cases/does-not-exist", headers=auth_headers(admin))
    assert response.status_code == 404
    assert response.json() == {"detail": "Case not found"}


@pytest.mark.asyncio
async def test_close_without_hearings_is_409(client, lawyer, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    response = await client.patch(f"/cases/{case.id}/status", headers=auth_headers(lawyer), json={"status": "Closed"})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_hearing_and_document_endpoints(client, lawyer, client_user, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    hearing = await client.post(f"/cases/{case.id}/hearings", headers=auth_headers(lawyer), json={
        "hearing_date": "2030-05-01T10:00:00",
        "court_name": "Dhaka District Court",
    })
    assert hearing.status_code == 200

    clash = await client.post(f"/cases/{case.id}/hearings", headers=auth_headers(lawyer), json={
        "hearing_date": "2030-05-01T10:00:00",
        "court_name": "Another Court",
    })
    assert clash.status_code == 409

    upload = await client.post(
        f"/cases/{case.id}/documents",
        headers=auth_headers(lawyer),
        files={"file": ("evidence.txt", b"witness statement", "text/plain")},
    )
    assert upload.status_code == 200
    document_id = upload.json()["id"]

    download = await client.get(f"/cases/documents/{document_id}/download", headers=auth_headers(client_user))
    assert download.status_code == 200
    assert download.content == b"witness statement"


@pytest.mark.asyncio
async def test_payment_checkout_and_callback(client, db, client_user, make_case, gateway):
    case = make_case()

    quote = await client.get(f"/payments/quote/{case.id}", headers=auth_headers(client_user))
    assert quote.json()["stage"] == "Advance"
    assert Decimal(quote.json()["amount"]) == Decimal("25000")

    started = await client.post(f"/payments/{case.id}/initiate", headers=auth_headers(client_user), json={})
    assert started.status_code == 200
    assert started.json()["redirect_url"] == gateway.url
    transaction_id = started.json()["transaction_id"]

    form = {"tran_id": transaction_id, "amount": "25000.00", "value_a": case.id, "value_b": "Advance", "card_type": "BKASH-BKash"}
    first = await client.post("/payments/callback/success", data=form)
    replay = await client.post("/payments/callback/success", data=form)

    assert first.status_code == 200
    assert first.json()["replayed"] is False
    assert replay.json()["replayed"] is True
    db.refresh(case)
    assert case.payment_status == PaymentStatus.ADVANCE_PAID

    history = await client.get("/payments/history", headers=auth_headers(client_user))
    assert len(history.json()) == 1
    assert history.json()[0]["admin_share"] is None


@pytest.mark.asyncio
async def test_gateway_failure_maps_to_502(client, client_user, make_case, gateway):
    gateway.error = GatewayFailure("Could not start the payment. Please try again later.")
    case = make_case()

    response = await client.post(f"/payments/{case.id}/initiate", headers=auth_headers(client_user), json={})

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_registration_to_login(client, db, admin, email_sender, monkeypatch):
    monkeypatch.setattr(admin_routes, "get_email_sender", lambda: email_sender)

    submitted = await client.post("/registrations/", json={"full_name": "Karim Ahmed", "email": "karim@example.com"})
    assert submitted.status_code == 201

    pending = await client.get("/admin/pending", headers=auth_headers(admin))
    assert [p["email"] for p in pending.json()] == ["karim@example.com"]

    approved = await client.post(f"/admin/pending/{submitted.json()['id']}/approve", headers=auth_headers(admin))
    assert approved.status_code == 200

    temp_password = email_sender.sent[-1]["body"].split("Temporary password: ")[1].split("<")[0]
    login = await client.post("/auth/login", data={"username": "karim@example.com", "password": temp_password})
    assert login.status_code == 200
    assert db.query(User).filter(User.email == "karim@example.com").one().last_login is not None


@pytest.mark.asyncio
async def test_forgot_password_does_not_reveal_accounts(client, lawyer):
    known = await client.post("/auth/forgot-password", json={"email": lawyer.email})
    unknown = await client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


@pytest.mark.asyncio
async def test_notifications_and_reports(client, admin, lawyer, make_case):
    make_case()

    inbox = await client.get("/notifications/", headers=auth_headers(lawyer))
    assert inbox.status_code == 200

    report = await client.get("/reports/?report_type=Yearly", headers=auth_headers(admin))
    assert report.status_code == 200
    assert report.json()["total_cases"] == 1


@pytest.mark.asyncio
async def test_bootstrap_admin_then_manage_users(client, make_user):
    created = await client.post("/admin/bootstrap", json={
        "email": "owner@lawfirm.com", "password": "Founding123", "full_name": "Firm Owner"
    })
    assert created.status_code == 201
    again = await client.post("/admin/bootstrap", json={
        "email": "other@lawfirm.com", "password": "Founding123", "full_name": "Other Owner"
    })
    assert again.status_code == 409

    login = await client.post("/auth/login", data={"username": "owner@lawfirm.com", "password": "Founding123"})
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
    leaving = make_user(UserRole.CLIENT)

    deleted = await client.delete(f"/admin/users/{leaving.id}", headers=headers)
    assert deleted.status_code == 200
    missing = await client.delete(f"/admin/users/{leaving.id}", headers=headers)
    assert missing.status_code == 404
