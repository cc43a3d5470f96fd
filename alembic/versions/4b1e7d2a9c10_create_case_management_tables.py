"""Create case management tables

Revision ID: 4b1e7d2a9c10
Revises:
Create Date: 2026-10-17 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b1e7d2a9c10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("ADMIN", "LAWYER", "CLIENT", name="userrole")
case_status = sa.Enum("PENDING", "ACTIVE", "REJECTED", "CLOSED", name="casestatus")
payment_status = sa.Enum("UNPAID", "ADVANCE_PAID", "FULLY_PAID", name="paymentstatus")
payment_stage = sa.Enum("ADVANCE", "FINAL", "FULL", name="paymentstage")
session_status = sa.Enum("INITIATED", "COMPLETED", name="paymentsessionstatus")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("last_login", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("full_name", sa.String(length=250), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=True),
        sa.Column("specialization", sa.String(length=100), nullable=True),
        sa.Column("date_of_joining", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_user_profiles_user_id", "user_profiles", ["user_id"], unique=True)

    op.create_table(
        "pending_users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("full_name", sa.String(length=250), nullable=False),
        sa.Column("email", sa.String(length=250), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("specialization", sa.String(length=100), nullable=True),
        sa.Column("requested_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("is_processed", sa.Boolean(), nullable=True),
        sa.Column("admin_note", sa.Text(), nullable=True),
    )
    op.create_index("ix_pending_users_email", "pending_users", ["email"])
    op.create_index("ix_pending_users_is_processed", "pending_users", ["is_processed"])

    op.create_table(
        "cases",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("case_type", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", case_status, nullable=False),
        sa.Column("start_date", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("total_fee", sa.Numeric(18, 2), nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("admin_share_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("lawyer_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
    )
    op.create_index("ix_cases_case_type", "cases", ["case_type"])
    op.create_index("ix_cases_status", "cases", ["status"])
    op.create_index("ix_cases_client_id", "cases", ["client_id"])
    op.create_index("ix_cases_lawyer_id", "cases", ["lawyer_id"])

    op.create_table(
        "hearings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("hearing_date", sa.DateTime(), nullable=False),
        sa.Column("court_name", sa.String(length=150), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), nullable=True),
        sa.Column("lawyer_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.UniqueConstraint("lawyer_id", "hearing_date", name="uq_hearing_lawyer_slot"),
        sa.UniqueConstraint("client_id", "hearing_date", name="uq_hearing_client_slot"),
    )
    op.create_index("ix_hearings_case_id", "hearings", ["case_id"])
    op.create_index("ix_hearings_hearing_date", "hearings", ["hearing_date"])

    op.create_table(
        "case_documents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=500), nullable=False),
        sa.Column("content_type", sa.String(length=100), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("uploaded_by", sa.String(length=255), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_case_documents_case_id", "case_documents", ["case_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("transaction_id", sa.String(length=100), nullable=False, unique=True),
        sa.Column("stage", payment_stage, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("admin_share", sa.Numeric(18, 2), nullable=False),
        sa.Column("lawyer_share", sa.Numeric(18, 2), nullable=False),
        sa.Column("payment_method", sa.String(length=100), nullable=True),
        sa.Column("payment_type", sa.String(length=50), nullable=False),
        sa.Column("payment_date", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_payments_case_id", "payments", ["case_id"])
    op.create_index("ix_payments_payment_date", "payments", ["payment_date"])

    op.create_table(
        "payment_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("transaction_id", sa.String(length=100), nullable=False),
        sa.Column("case_id", sa.String(length=36), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("stage", payment_stage, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", session_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_sessions_transaction_id", "payment_sessions", ["transaction_id"], unique=True)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("for_user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_notifications_for_user_id", "notifications", ["for_user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade():
    op.drop_table("notifications")
    op.drop_table("payment_sessions")
    op.drop_table("payments")
    op.drop_table("case_documents")
    op.drop_table("hearings")
    op.drop_table("cases")
    op.drop_table("pending_users")
    op.drop_table("user_profiles")
    op.drop_table("users")
    bind = op.get_bind()
    for enum_type in (session_status, payment_stage, payment_status, case_status, user_role):
        enum_type.drop(bind, checkfirst=True)
