from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List
from datetime import datetime
import logging

from lawfirm.actor import Actor
from lawfirm.database import get_db
from lawfirm.models import UserRole
from lawfirm.auth.dependencies import get_actor, user_from_token
from lawfirm.realtime import manager
from lawfirm.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: str
    title: str
    message: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    unread: int


@router.get("/", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return NotificationDispatcher(db).list_for(actor, unread_only=unread_only, skip=skip, limit=limit)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return {"unread": NotificationDispatcher(db).unread_count(actor)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return NotificationDispatcher(db).mark_read(actor, notification_id)


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: str = Query(...),
    db: Session = Depends(get_db)
):
    """Live feed of new notifications. Browsers cannot set headers here, so the token rides in the query."""
    user = user_from_token(db, token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id, is_admin = user.id, user.role == UserRole.ADMIN
    await manager.connect(websocket, user_id, is_admin=is_admin)
    logger.info(f"Live notifications connected for {user_id}")
    try:
        while True:
            # Clients only send keepalives
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket, user_id)
