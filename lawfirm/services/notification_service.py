import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_, desc
from sqlalchemy.orm import Session

from lawfirm.actor import Actor
from lawfirm.exceptions import NotFound
from lawfirm.models import NotificationItem
from lawfirm.realtime import ConnectionManager, manager

logger = logging.getLogger(__name__)

ADMINS = None  # push target for broadcast notifications


class NotificationDispatcher:
    """Persists notifications in the caller's session and pushes them live.

    Rows are added to the session and commit together with the operation
    that produced them. Live events are queued and only sent by ``deliver``,
    which the HTTP layer schedules after the commit.
    """

    def __init__(self, db: Session, connections: ConnectionManager = manager):
        self.db = db
        self.connections = connections
        self._outbox: List[Tuple[Optional[str], dict]] = []

    def notify_user(self, user_id: str, title: str, message: str) -> NotificationItem:
        item = NotificationItem(for_user_id=user_id, title=title, message=message, is_read=False)
        self.db.add(item)
        self._outbox.append((user_id, {"title": title, "message": message}))
        return item

    def notify_admins(self, title: str, message: str) -> NotificationItem:
        item = NotificationItem(for_user_id=None, title=title, message=message, is_read=False)
        self.db.add(item)
        self._outbox.append((ADMINS, {"title": title, "message": message}))
        return item

    @property
    def pending_events(self) -> List[Tuple[Optional[str], dict]]:
        return list(self._outbox)

    def discard(self):
        """Drop queued pushes, used when the surrounding transaction rolls back."""
        self._outbox.clear()

    async def deliver(self):
        events, self._outbox = self._outbox, []
        for target, payload in events:
            try:
                if target is ADMINS:
                    await self.connections.send_to_admins(payload)
                else:
                    await self.connections.send_to_user(target, payload)
            except Exception as e:
                logger.warning(f"Live push to {target or 'admins'} failed: {e}")

    # =====================================================
    # INBOX
    # =====================================================

    def _inbox_query(self, actor: Actor):
        if actor.is_admin:
            return self.db.query(NotificationItem).filter(
                or_(NotificationItem.for_user_id == actor.user_id, NotificationItem.for_user_id.is_(None))
            )
        return self.db.query(NotificationItem).filter(NotificationItem.for_user_id == actor.user_id)

    def list_for(self, actor: Actor, unread_only: bool = False, skip: int = 0, limit: int = 50) -> List[NotificationItem]:
        query = self._inbox_query(actor)
        if unread_only:
            query = query.filter(NotificationItem.is_read == False)
        return query.order_by(desc(NotificationItem.created_at)).offset(skip).limit(limit).all()

    def unread_count(self, actor: Actor) -> int:
        return self._inbox_query(actor).filter(NotificationItem.is_read == False).count()

    def mark_read(self, actor: Actor, notification_id: str) -> NotificationItem:
        item = self._inbox_query(actor).filter(NotificationItem.id == notification_id).first()
        if not item:
            raise NotFound("Notification not found")
        item.is_read = True
        self.db.commit()
        self.db.refresh(item)
        return item
