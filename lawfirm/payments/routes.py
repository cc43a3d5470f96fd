from fastapi import APIRouter, BackgroundTasks, Depends, Form
from sqlalchemy.orm import Session
from typing import List, Optional

from lawfirm.actor import Actor
from lawfirm.database import get_db
from lawfirm.models import PaymentFlow
from lawfirm.payments.schemas import (
    QuoteResponse, InitiateRequest, InitiateResponse, CallbackResult, PaymentResponse, PaymentSummary
)
from lawfirm.auth.dependencies import get_actor, require_admin, require_client
from lawfirm.services.notification_service import NotificationDispatcher
from lawfirm.services.payment_gateway import SSLCommerzGateway, get_payment_gateway
from lawfirm.services.payment_service import GatewayCallback, PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])

# =====================================================
# CLIENT CHECKOUT
# =====================================================

@router.get("/quote/{case_id}", response_model=QuoteResponse)
async def get_quote(
    case_id: str,
    flow: PaymentFlow = PaymentFlow.STAGED,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Amount due for the next payment stage of a case."""
    quote = PaymentService(db).quote(actor, case_id, flow)
    return quote.__dict__

@router.post("/{case_id}/initiate", response_model=InitiateResponse)
async def initiate_payment(
    case_id: str,
    payload: InitiateRequest,
    actor: Actor = Depends(require_client()),
    gateway: SSLCommerzGateway = Depends(get_payment_gateway),
    db: Session = Depends(get_db)
):
    redirect_url, session = PaymentService(db, gateway=gateway).initiate(
        actor, case_id, payload.flow
    )
    return {
        "redirect_url": redirect_url,
        "transaction_id": session.transaction_id,
        "stage": session.stage,
        "amount": session.amount,
    }

# =====================================================
# GATEWAY CALLBACKS
# =====================================================

def callback_form(
    tran_id: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    value_a: Optional[str] = Form(None),
    value_b: Optional[str] = Form(None),
    card_type: Optional[str] = Form(None),
    card_issuer: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    error: Optional[str] = Form(None),
) -> GatewayCallback:
    return GatewayCallback(
        tran_id=tran_id, amount=amount, value_a=value_a, value_b=value_b,
        card_type=card_type, card_issuer=card_issuer, status=status, error=error
    )

@router.post("/callback/success", response_model=CallbackResult)
async def payment_success(
    background_tasks: BackgroundTasks,
    callback: GatewayCallback = Depends(callback_form),
    db: Session = Depends(get_db)
):
    notifier = NotificationDispatcher(db)
    result = PaymentService(db, notifier=notifier).reconcile(callback)
    background_tasks.add_task(notifier.deliver)
    payment = result.payment
    return {
        "message": "Payment already recorded." if result.replayed else "Payment successful.",
        "transaction_id": payment.transaction_id,
        "case_id": payment.case_id,
        "payment_type": payment.payment_type,
        "amount": payment.amount,
        "replayed": result.replayed,
    }

@router.post("/callback/fail", response_model=CallbackResult)
async def payment_fail(
    callback: GatewayCallback = Depends(callback_form),
    db: Session = Depends(get_db)
):
    message = PaymentService(db).fail(callback)
    return {"message": message, "transaction_id": callback.tran_id}

@router.post("/callback/cancel", response_model=CallbackResult)
async def payment_cancel(
    callback: GatewayCallback = Depends(callback_form),
    db: Session = Depends(get_db)
):
    message = PaymentService(db).cancel(callback)
    return {"message": message, "transaction_id": callback.tran_id}

# =====================================================
# HISTORY
# =====================================================

@router.get("/history", response_model=List[PaymentResponse])
async def payment_history(
    case_id: Optional[str] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    service = PaymentService(db)
    return [service.payment_view(actor, payment) for payment in service.history(actor, case_id)]

@router.get("/summary", response_model=PaymentSummary)
async def payment_summary(
    actor: Actor = Depends(require_admin()),
    db: Session = Depends(get_db)
):
    return PaymentService(db).summary(actor)
