import pytest

from lawfirm.exceptions import NotFound
from lawfirm.realtime import ConnectionManager
from lawfirm.services.notification_service import NotificationDispatcher

from conftest import actor_for


class FakeSocket:
    def __init__(self, broken=False):
        self.accepted = False
        self.sent = []
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_text(self, data):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(data)


def test_notifications_commit_with_the_operation(db, lawyer):
    notifier = NotificationDispatcher(db)
    notifier.notify_user(lawyer.id, "New Case Assigned", "Please accept it.")
    db.rollback()

    assert NotificationDispatcher(db).list_for(actor_for(lawyer)) == []


def test_admin_inbox_includes_broadcasts(db, admin, lawyer):
    notifier = NotificationDispatcher(db)
    notifier.notify_admins("New Registration", "Someone wants to join.")
    notifier.notify_user(lawyer.id, "New Case Assigned", "Please accept it.")
    db.commit()

    assert [n.title for n in notifier.list_for(actor_for(admin))] == ["New Registration"]
    assert [n.title for n in notifier.list_for(actor_for(lawyer))] == ["New Case Assigned"]
    assert notifier.unread_count(actor_for(admin)) == 1


def test_mark_read(db, lawyer, client_user):
    notifier = NotificationDispatcher(db)
    item = notifier.notify_user(lawyer.id, "Payment Received", "Your share: 20000.")
    db.commit()

    with pytest.raises(NotFound):
        notifier.mark_read(actor_for(client_user), item.id)

    assert notifier.mark_read(actor_for(lawyer), item.id).is_read is True
    assert notifier.unread_count(actor_for(lawyer)) == 0
    assert notifier.list_for(actor_for(lawyer), unread_only=True) == []


@pytest.mark.asyncio
async def test_deliver_pushes_to_connected_users_and_admins(db, admin, lawyer):
    connections = ConnectionManager()
    lawyer_socket, admin_socket = FakeSocket(), FakeSocket()
    await connections.connect(lawyer_socket, lawyer.id)
    await connections.connect(admin_socket, admin.id, is_admin=True)

    notifier = NotificationDispatcher(db, connections=connections)
    notifier.notify_user(lawyer.id, "Hearing Scheduled", "Tomorrow at 10:00")
    notifier.notify_admins("Payment Received", "25000 received")
    db.commit()
    await notifier.deliver()

    assert len(lawyer_socket.sent) == 1
    assert "Hearing Scheduled" in lawyer_socket.sent[0]
    assert "Payment Received" in admin_socket.sent[0]
    assert notifier.pending_events == []


@pytest.mark.asyncio
async def test_broken_socket_is_dropped_without_failing(db, lawyer):
    connections = ConnectionManager()
    await connections.connect(FakeSocket(broken=True), lawyer.id)

    notifier = NotificationDispatcher(db, connections=connections)
    notifier.notify_user(lawyer.id, "Case Accepted", "Active now")
    db.commit()
    await notifier.deliver()

    assert connections.get_connected_count(lawyer.id) == 0
