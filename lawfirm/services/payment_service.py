"""
Staged payments and revenue splitting.

A case is paid either in two installments (Advance, then Final) or in one
Full payment. The client-facing request only computes the amount and opens a
gateway session; money is booked when the gateway calls back, and each
booked stage appends one Payment row.

Split rules, with rate = admin_share_percentage / 100:

    Advance  admin = 0                    lawyer = paid
    Final    admin = total_fee * rate     lawyer = paid - admin
    Full     admin = paid * rate          lawyer = paid - admin

The Final admin share is taken on the whole fee, not on the installment, so
with a high rate and a small final installment the lawyer share goes
negative. That case is logged, not corrected.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lawfirm import config
from lawfirm.actor import Actor
from lawfirm.exceptions import AccessDenied, BusinessRuleRejection, ValidationRejection
from lawfirm.models import (
    PAYMENT_TYPE_LABELS, Case, CaseStatus, Payment, PaymentFlow, PaymentSession,
    PaymentSessionStatus, PaymentStage, PaymentStatus, User, UserProfile
)
from lawfirm.services.case_service import ensure_can_view, get_case_or_404
from lawfirm.services.notification_service import NotificationDispatcher
from lawfirm.services.payment_gateway import Customer, SSLCommerzGateway

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")

# Payment status a case must be in before a stage can be booked
REQUIRED_STATUS = {
    PaymentStage.ADVANCE: PaymentStatus.UNPAID,
    PaymentStage.FULL: PaymentStatus.UNPAID,
    PaymentStage.FINAL: PaymentStatus.ADVANCE_PAID,
}

RESULTING_STATUS = {
    PaymentStage.ADVANCE: PaymentStatus.ADVANCE_PAID,
    PaymentStage.FULL: PaymentStatus.FULLY_PAID,
    PaymentStage.FINAL: PaymentStatus.FULLY_PAID,
}


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def stage_fraction(stage: PaymentStage, advance_percent: Optional[Decimal] = None) -> Decimal:
    advance_percent = config.ADVANCE_PAYMENT_PERCENT if advance_percent is None else Decimal(advance_percent)
    if stage == PaymentStage.FULL:
        return Decimal("1")
    if stage == PaymentStage.ADVANCE:
        return advance_percent / HUNDRED
    return (HUNDRED - advance_percent) / HUNDRED


def compute_split(stage: PaymentStage, paid: Decimal, total_fee: Decimal, admin_share_percentage: Decimal) -> Tuple[Decimal, Decimal]:
    """Return ``(admin_share, lawyer_share)`` for a booked installment."""
    rate = Decimal(admin_share_percentage) / HUNDRED
    paid = money(paid)
    if stage == PaymentStage.ADVANCE:
        admin_share = Decimal("0.00")
    elif stage == PaymentStage.FINAL:
        admin_share = money(Decimal(total_fee) * rate)
    else:
        admin_share = money(paid * rate)
    return admin_share, paid - admin_share


@dataclass
class PaymentQuote:
    case_id: str
    stage: PaymentStage
    amount: Decimal
    total_fee: Decimal
    payment_status: PaymentStatus


@dataclass
class GatewayCallback:
    tran_id: Optional[str] = None
    amount: Optional[str] = None
    value_a: Optional[str] = None
    value_b: Optional[str] = None
    card_type: Optional[str] = None
    card_issuer: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @property
    def payment_method(self) -> str:
        return (self.card_type or self.card_issuer or "Online").strip()


@dataclass
class ReconcileResult:
    payment: Payment
    replayed: bool = False


class PaymentService:
    def __init__(
        self,
        db: Session,
        gateway: Optional[SSLCommerzGateway] = None,
        notifier: Optional[NotificationDispatcher] = None
    ):
        self.db = db
        self.gateway = gateway or SSLCommerzGateway()
        self.notifier = notifier or NotificationDispatcher(db)

    # =====================================================
    # QUOTE & INITIATION
    # =====================================================

    def _quote_for(self, case: Case, flow: PaymentFlow) -> PaymentQuote:
        if case.payment_status == PaymentStatus.FULLY_PAID:
            raise BusinessRuleRejection("This case is already fully paid.")
        if case.status == CaseStatus.REJECTED:
            raise BusinessRuleRejection("Payments are not accepted for a rejected case.")
        total_fee = Decimal(case.total_fee or 0)
        if total_fee <= 0:
            raise ValidationRejection("No fee is configured for this case type.")

        if case.payment_status == PaymentStatus.ADVANCE_PAID:
            stage = PaymentStage.FINAL
        elif flow == PaymentFlow.FULL:
            stage = PaymentStage.FULL
        else:
            stage = PaymentStage.ADVANCE

        return PaymentQuote(
            case_id=case.id,
            stage=stage,
            amount=money(total_fee * stage_fraction(stage)),
            total_fee=money(total_fee),
            payment_status=case.payment_status,
        )

    def quote(self, actor: Actor, case_id: str, flow: PaymentFlow = PaymentFlow.STAGED) -> PaymentQuote:
        case = get_case_or_404(self.db, case_id)
        ensure_can_view(case, actor)
        return self._quote_for(case, flow)

    def _customer_for(self, case: Case) -> Customer:
        client = self.db.query(User).filter(User.id == case.client_id).first()
        profile = self.db.query(UserProfile).filter(UserProfile.user_id == case.client_id).first()
        return Customer(
            name=profile.full_name if profile else client.email,
            email=client.email,
            phone=profile.phone if profile else None,
            address=profile.address if profile else None,
        )

    def initiate(
        self,
        actor: Actor,
        case_id: str,
        flow: PaymentFlow = PaymentFlow.STAGED,
        customer: Optional[Customer] = None
    ) -> Tuple[str, PaymentSession]:
        """Open a gateway session and return the redirect URL."""
        case = get_case_or_404(self.db, case_id)
        if not (actor.is_client and case.client_id == actor.user_id):
            raise AccessDenied("Only the client of this case can pay for it")

        quote = self._quote_for(case, flow)
        transaction_id = f"TXN-{uuid.uuid4().hex[:20].upper()}"
        customer = customer or self._customer_for(case)

        # Nothing is stored until the gateway gives us somewhere to send the client
        redirect_url = self.gateway.initiate_session(
            quote.amount, transaction_id, customer, case.id, quote.stage.value
        )

        now = datetime.utcnow()
        session = PaymentSession(
            transaction_id=transaction_id,
            case_id=case.id,
            client_id=case.client_id,
            stage=quote.stage,
            amount=quote.amount,
            status=PaymentSessionStatus.INITIATED,
            created_at=now,
            expires_at=now + timedelta(minutes=config.PAYMENT_SESSION_TTL_MINUTES),
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"Payment session {transaction_id} opened: case {case.id}, {quote.stage.value}, {quote.amount}")
        return redirect_url, session

    # =====================================================
    # RECONCILIATION
    # =====================================================

    def _existing_payment(self, transaction_id: str) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.transaction_id == transaction_id).first()

    def _parse_stage(self, raw: Optional[str]) -> Optional[PaymentStage]:
        if not raw or not raw.strip():
            return None
        try:
            return PaymentStage(raw.strip())
        except ValueError:
            raise ValidationRejection(f"Unknown payment stage '{raw}'")

    def _resolve_context(self, callback: GatewayCallback) -> Tuple[str, PaymentStage, Optional[PaymentSession]]:
        """Work out which case and stage a callback settles."""
        case_id = (callback.value_a or "").strip() or None
        stage = self._parse_stage(callback.value_b)

        session = self.db.query(PaymentSession).filter(
            PaymentSession.transaction_id == callback.tran_id
        ).first()

        if session:
            if case_id and case_id != session.case_id:
                raise ValidationRejection("Callback case does not match the initiated transaction")
            if stage and stage != session.stage:
                raise ValidationRejection("Callback stage does not match the initiated transaction")
            if (not case_id or not stage) and session.expires_at < datetime.utcnow():
                raise ValidationRejection("Payment session expired and the callback carries no case context")
            return session.case_id, session.stage, session

        if not case_id or not stage:
            raise ValidationRejection("Callback is missing case or stage information")
        return case_id, stage, None

    def reconcile(self, callback: GatewayCallback) -> ReconcileResult:
        """Book a successful gateway callback. Replays return the original record."""
        if not callback.tran_id or not callback.tran_id.strip():
            raise ValidationRejection("Callback is missing a transaction id")
        callback.tran_id = callback.tran_id.strip()

        existing = self._existing_payment(callback.tran_id)
        if existing:
            logger.info(f"Duplicate callback for {callback.tran_id} ignored")
            return ReconcileResult(payment=existing, replayed=True)

        try:
            paid = Decimal(str(callback.amount).strip())
            if paid.is_finite():
                paid = money(paid)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationRejection("Callback amount is missing or invalid")
        # NaN and Infinity parse but cannot be compared or booked
        if not paid.is_finite():
            raise ValidationRejection("Callback amount is missing or invalid")
        if paid <= 0:
            raise ValidationRejection("Callback amount must be positive")

        case_id, stage, session = self._resolve_context(callback)
        case = get_case_or_404(self.db, case_id, for_update=True)

        required = REQUIRED_STATUS[stage]
        if case.payment_status != required:
            self.db.rollback()
            raise BusinessRuleRejection(
                f"Cannot book {stage.value} payment: case payment status is {case.payment_status.value}."
            )

        total_fee = Decimal(case.total_fee)
        expected = session.amount if session else money(total_fee * stage_fraction(stage))
        if money(expected) != paid:
            logger.warning(f"Transaction {callback.tran_id}: collected {paid} but expected {expected}")

        admin_share, lawyer_share = compute_split(stage, paid, total_fee, Decimal(case.admin_share_percentage))
        if lawyer_share < 0:
            logger.warning(
                f"Transaction {callback.tran_id}: admin share {admin_share} exceeds installment {paid} "
                f"(case {case.id}, fee {total_fee}, {case.admin_share_percentage}%)"
            )

        payment_type = PAYMENT_TYPE_LABELS[stage]
        payment = Payment(
            case_id=case.id,
            transaction_id=callback.tran_id,
            stage=stage,
            amount=paid,
            admin_share=admin_share,
            lawyer_share=lawyer_share,
            payment_method=callback.payment_method,
            payment_type=payment_type,
            payment_date=datetime.utcnow(),
        )
        self.db.add(payment)
        case.payment_status = RESULTING_STATUS[stage]
        if session:
            session.status = PaymentSessionStatus.COMPLETED

        self.notifier.notify_admins(
            "Payment Received",
            f"{payment_type} payment of {paid} received for case <strong>{case.title}</strong> "
            f"(admin share {admin_share})."
        )
        if case.lawyer_id:
            self.notifier.notify_user(
                case.lawyer_id,
                "Payment Received",
                f"The client paid {paid} ({payment_type}) for <strong>{case.title}</strong>. "
                f"Your share: {lawyer_share}."
            )

        try:
            self.db.commit()
        except IntegrityError:
            # Another worker booked the same transaction first
            self.db.rollback()
            self.notifier.discard()
            existing = self._existing_payment(callback.tran_id)
            if existing:
                return ReconcileResult(payment=existing, replayed=True)
            raise

        self.db.refresh(payment)
        logger.info(
            f"Booked {payment_type} {paid} for case {case.id} "
            f"(admin {admin_share}, lawyer {lawyer_share}); status {case.payment_status.value}"
        )
        return ReconcileResult(payment=payment)

    def fail(self, callback: GatewayCallback) -> str:
        logger.warning(f"Gateway reported failure for {callback.tran_id}: {callback.error or callback.status}")
        return "Payment failed. No amount was charged; please try again."

    def cancel(self, callback: GatewayCallback) -> str:
        logger.info(f"Payment {callback.tran_id} cancelled by the customer")
        return "Payment was cancelled."

    # =====================================================
    # HISTORY
    # =====================================================

    def history(self, actor: Actor, case_id: Optional[str] = None) -> List[Payment]:
        query = self.db.query(Payment).join(Case, Payment.case_id == Case.id)
        if actor.is_client:
            query = query.filter(Case.client_id == actor.user_id)
        elif actor.is_lawyer:
            query = query.filter(Case.lawyer_id == actor.user_id)
        if case_id:
            query = query.filter(Payment.case_id == case_id)
        return query.order_by(desc(Payment.payment_date)).all()

    def summary(self, actor: Actor) -> Dict[str, Any]:
        if not actor.is_admin:
            raise AccessDenied("Only admins can view the financial summary")
        count, revenue, admin_total, lawyer_total = self.db.query(
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount), 0),
            func.coalesce(func.sum(Payment.admin_share), 0),
            func.coalesce(func.sum(Payment.lawyer_share), 0),
        ).one()
        return {
            "payment_count": count,
            "total_revenue": money(revenue),
            "total_admin_share": money(admin_total),
            "total_lawyer_share": money(lawyer_total),
        }

    def payment_view(self, actor: Actor, payment: Payment) -> Dict[str, Any]:
        """Shape a payment for the viewer's role. Clients never see the split."""
        case = payment.case
        view = {
            "id": payment.id,
            "case_id": payment.case_id,
            "case_title": case.title if case else None,
            "transaction_id": payment.transaction_id,
            "amount": money(payment.amount),
            "payment_type": payment.payment_type,
            "payment_method": payment.payment_method,
            "payment_date": payment.payment_date,
        }
        if actor.is_admin or actor.is_lawyer:
            view["admin_share"] = money(payment.admin_share)
            view["lawyer_share"] = money(payment.lawyer_share)
            view["admin_share_percentage"] = Decimal(case.admin_share_percentage) if case else None
        return view
