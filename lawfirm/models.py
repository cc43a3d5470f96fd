from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, Enum, Numeric, UniqueConstraint, BigInteger
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lawfirm.database import Base
import enum
import uuid

# =====================================================
# ENUMS
# =====================================================

class UserRole(str, enum.Enum):
    ADMIN = "Admin"
    LAWYER = "Lawyer"
    CLIENT = "Client"

class CaseStatus(str, enum.Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    REJECTED = "Rejected"
    CLOSED = "Closed"

class PaymentStatus(str, enum.Enum):
    UNPAID = "Unpaid"
    ADVANCE_PAID = "AdvancePaid"
    FULLY_PAID = "FullyPaid"

class PaymentStage(str, enum.Enum):
    ADVANCE = "Advance"
    FINAL = "Final"
    FULL = "Full"

class PaymentFlow(str, enum.Enum):
    STAGED = "staged"
    FULL = "full"

class PaymentSessionStatus(str, enum.Enum):
    INITIATED = "Initiated"
    COMPLETED = "Completed"

# Tag written on the Payment row for each stage
PAYMENT_TYPE_LABELS = {
    PaymentStage.ADVANCE: "Advance",
    PaymentStage.FINAL: "Final Settlement",
    PaymentStage.FULL: "Full Payment",
}

ACTIVE_WORKLOAD_STATUSES = (CaseStatus.PENDING, CaseStatus.ACTIVE)

def new_id() -> str:
    return str(uuid.uuid4())

# =====================================================
# USERS & REGISTRATION
# =====================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, index=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())
    last_login = Column(DateTime)

    # Relationships
    profile = relationship("UserProfile", back_populates="user", uselist=False)
    cases_as_client = relationship("Case", foreign_keys="Case.client_id", back_populates="client")
    cases_as_lawyer = relationship("Case", foreign_keys="Case.lawyer_id", back_populates="lawyer")

class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True)
    full_name = Column(String(250), nullable=False)
    role = Column(Enum(UserRole), nullable=False)
    phone = Column(String(50))
    address = Column(Text)
    additional_info = Column(Text)
    specialization = Column(String(100))  # For lawyers
    date_of_joining = Column(DateTime)  # For lawyers
    created_at = Column(DateTime, default=func.now())

    user = relationship("User", back_populates="profile")

class PendingUser(Base):
    __tablename__ = "pending_users"

    id = Column(String(36), primary_key=True, default=new_id)
    full_name = Column(String(250), nullable=False)
    email = Column(String(250), nullable=False, index=True)
    phone = Column(String(50))
    address = Column(Text)
    additional_info = Column(Text)
    role = Column(Enum(UserRole), default=UserRole.CLIENT, nullable=False)
    specialization = Column(String(100))
    requested_at = Column(DateTime, default=func.now())
    is_processed = Column(Boolean, default=False, index=True)
    admin_note = Column(Text)

# =====================================================
# CASE MANAGEMENT
# =====================================================

class Case(Base):
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    case_type = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False)
    status = Column(Enum(CaseStatus), default=CaseStatus.PENDING, nullable=False, index=True)
    start_date = Column(DateTime, default=func.now(), nullable=False)
    end_date = Column(DateTime)

    # Payment fields
    total_fee = Column(Numeric(18, 2), nullable=False, default=0)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    admin_share_percentage = Column(Numeric(5, 2), nullable=False, default=10)

    client_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    lawyer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    client = relationship("User", foreign_keys=[client_id], back_populates="cases_as_client")
    lawyer = relationship("User", foreign_keys=[lawyer_id], back_populates="cases_as_lawyer")
    hearings = relationship("Hearing", back_populates="case", order_by="Hearing.hearing_date")
    documents = relationship("CaseDocument", back_populates="case")
    payments = relationship("Payment", back_populates="case", order_by="Payment.payment_date")

class Hearing(Base):
    __tablename__ = "hearings"
    # A lawyer or a client cannot be in two hearings at the same instant
    __table_args__ = (
        UniqueConstraint("lawyer_id", "hearing_date", name="uq_hearing_lawyer_slot"),
        UniqueConstraint("client_id", "hearing_date", name="uq_hearing_client_slot"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False, index=True)
    hearing_date = Column(DateTime, nullable=False, index=True)
    court_name = Column(String(150), nullable=False)
    notes = Column(Text, default="")
    reminder_sent = Column(Boolean, default=False)

    # Copied from the case so the slot constraints can be enforced by the database
    lawyer_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    client_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    case = relationship("Case", back_populates="hearings")

class CaseDocument(Base):
    __tablename__ = "case_documents"

    id = Column(String(36), primary_key=True, default=new_id)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    content_type = Column(String(100))
    file_size = Column(BigInteger, nullable=False, default=0)
    uploaded_by = Column(String(255))
    uploaded_at = Column(DateTime, default=func.now())

    case = relationship("Case", back_populates="documents")

# =====================================================
# PAYMENTS
# =====================================================

class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False, index=True)
    transaction_id = Column(String(100), unique=True, nullable=False)
    stage = Column(Enum(PaymentStage), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)  # Collected in this transaction
    admin_share = Column(Numeric(18, 2), nullable=False)
    lawyer_share = Column(Numeric(18, 2), nullable=False)
    payment_method = Column(String(100), default="")
    payment_type = Column(String(50), nullable=False)
    payment_date = Column(DateTime, default=func.now(), index=True)

    case = relationship("Case", back_populates="payments")

class PaymentSession(Base):
    """An initiated gateway transaction awaiting its callback."""
    __tablename__ = "payment_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    transaction_id = Column(String(100), unique=True, nullable=False, index=True)
    case_id = Column(String(36), ForeignKey("cases.id"), nullable=False)
    client_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    stage = Column(Enum(PaymentStage), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    status = Column(Enum(PaymentSessionStatus), default=PaymentSessionStatus.INITIATED, nullable=False)
    created_at = Column(DateTime, default=func.now())
    expires_at = Column(DateTime, nullable=False)

# =====================================================
# NOTIFICATIONS
# =====================================================

class NotificationItem(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    # Null targets every admin
    for_user_id = Column(String(36), ForeignKey("users.id"), index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=func.now(), index=True)
