"""
Test configuration and fixtures.

Provides:
- In-memory SQLite session, schema rebuilt for every test
- User, profile and case factories
- Bearer tokens and an HTTPX AsyncClient bound to the app
- A fake payment gateway and a recording email sender
"""
import os
import tempfile
import uuid
from decimal import Decimal
from typing import AsyncGenerator, Generator

# Settings are read at import time, so they must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SMTP_HOST"] = ""
os.environ["ADMIN_NOTIFY_EMAIL"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="lawfirm-uploads-")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from lawfirm.actor import Actor
from lawfirm.auth.utils import create_access_token, get_password_hash
from lawfirm.database import Base, get_db
from lawfirm.exceptions import GatewayFailure
from lawfirm.models import Case, CaseStatus, PaymentStatus, User, UserProfile, UserRole
from lawfirm.services.payment_gateway import get_payment_gateway

TEST_PASSWORD = "Secret123!"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(db: Session):
    def _make(role: UserRole, full_name: str = "Test User", specialization: str = None, email: str = None) -> User:
        user = User(
            email=email or f"{role.value.lower()}-{uuid.uuid4().hex[:8]}@test.com",
            password_hash=get_password_hash(TEST_PASSWORD),
            role=role,
            is_active=True,
        )
        db.add(user)
        db.flush()
        db.add(UserProfile(
            user_id=user.id,
            full_name=full_name,
            role=role,
            specialization=specialization,
        ))
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def admin(make_user) -> User:
    return make_user(UserRole.ADMIN, full_name="Firm Admin")


@pytest.fixture
def lawyer(make_user) -> User:
    return make_user(UserRole.LAWYER, full_name="Civil Lawyer", specialization="Civil")


@pytest.fixture
def client_user(make_user) -> User:
    return make_user(UserRole.CLIENT, full_name="Rahim Uddin")


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, email=user.email)


@pytest.fixture
def make_case(db: Session, lawyer: User, client_user: User):
    """Insert a case directly, skipping the assignment checks."""
    def _make(
        total_fee: Decimal = Decimal("50000"),
        admin_share_percentage: Decimal = Decimal("10"),
        status: CaseStatus = CaseStatus.PENDING,
        payment_status: PaymentStatus = PaymentStatus.UNPAID,
        case_type: str = "Civil",
        lawyer_id: str = None,
        client_id: str = None,
    ) -> Case:
        case = Case(
            title=f"Land dispute {uuid.uuid4().hex[:6]}",
            case_type=case_type,
            description="Boundary dispute over inherited land",
            status=status,
            total_fee=total_fee,
            payment_status=payment_status,
            admin_share_percentage=admin_share_percentage,
            lawyer_id=lawyer_id or lawyer.id,
            client_id=client_id or client_user.id,
        )
        db.add(case)
        db.commit()
        db.refresh(case)
        return case
    return _make


# =============================================================================
# Fakes
# =============================================================================

class FakeGateway:
    def __init__(self, url: str = "https://sandbox.test/gateway/session", error: Exception = None):
        self.url = url
        self.error = error
        self.calls = []

    def initiate_session(self, amount, transaction_id, customer, case_id, stage):
        self.calls.append({
            "amount": amount,
            "transaction_id": transaction_id,
            "customer": customer,
            "case_id": case_id,
            "stage": stage,
        })
        if self.error:
            raise self.error
        return self.url


class RecordingEmailSender:
    def __init__(self):
        self.sent = []

    def send(self, to, subject, html_body) -> bool:
        self.sent.append({"to": to, "subject": subject, "body": html_body})
        return True


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def failing_gateway() -> FakeGateway:
    return FakeGateway(error=GatewayFailure("Could not start the payment. Please try again later."))


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


# =============================================================================
# Client Fixtures
# =============================================================================

def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
async def client(db: Session, gateway: FakeGateway) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
