from datetime import datetime, timedelta

import pytest

from lawfirm import config
from lawfirm.exceptions import AccessDenied, BusinessRuleRejection, ValidationRejection
from lawfirm.models import CaseStatus, NotificationItem, PaymentStatus, UserRole
from lawfirm.services.case_lifecycle import CaseLifecycle
from lawfirm.services.hearing_service import HearingService

from conftest import actor_for


def _add_hearing(db, lawyer, case, days_ahead=3):
    return HearingService(db).add_hearing(
        actor_for(lawyer), case.id, datetime(2030, 1, 1, 10, 0) + timedelta(days=days_ahead), "Dhaka District Court"
    )


def test_accept_requires_advance_payment(db, lawyer, make_case):
    case = make_case()

    with pytest.raises(BusinessRuleRejection) as exc:
        CaseLifecycle(db).accept(actor_for(lawyer), case.id)

    assert "advance payment" in exc.value.detail
    db.refresh(case)
    assert case.status == CaseStatus.PENDING


def test_accept_after_advance_activates_and_notifies(db, lawyer, client_user, make_case):
    case = make_case(payment_status=PaymentStatus.ADVANCE_PAID)

    case = CaseLifecycle(db).accept(actor_for(lawyer), case.id)

    assert case.status == CaseStatus.ACTIVE
    titles = {n.title for n in db.query(NotificationItem).filter(NotificationItem.for_user_id == client_user.id)}
    assert "Case Accepted" in titles
    assert db.query(NotificationItem).filter(NotificationItem.for_user_id.is_(None)).count() == 1


def test_only_assigned_lawyer_can_respond(db, make_user, make_case):
    other = make_user(UserRole.LAWYER, specialization="Civil")
    case = make_case(payment_status=PaymentStatus.ADVANCE_PAID)

    with pytest.raises(AccessDenied):
        CaseLifecycle(db).accept(actor_for(other), case.id)


def test_reject_alerts_admins(db, lawyer, make_case):
    case = make_case()

    case = CaseLifecycle(db).reject(actor_for(lawyer), case.id)

    assert case.status == CaseStatus.REJECTED
    admin_alert = db.query(NotificationItem).filter(NotificationItem.for_user_id.is_(None)).one()
    assert admin_alert.title == "Action Required: Case Rejected"


def test_rejected_is_terminal(db, admin, make_case):
    case = make_case(status=CaseStatus.REJECTED)

    for target in (CaseStatus.ACTIVE, CaseStatus.CLOSED, CaseStatus.PENDING):
        with pytest.raises(BusinessRuleRejection):
            CaseLifecycle(db).update_status(actor_for(admin), case.id, target)


def test_same_status_is_a_validation_error(db, admin, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    with pytest.raises(ValidationRejection):
        CaseLifecycle(db).update_status(actor_for(admin), case.id, CaseStatus.ACTIVE)


def test_close_with_zero_hearings_is_rejected(db, lawyer, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    with pytest.raises(BusinessRuleRejection) as exc:
        CaseLifecycle(db).update_status(actor_for(lawyer), case.id, CaseStatus.CLOSED)

    assert exc.value.detail == "Cannot close case: 0 hearing(s) recorded, at least 1 required."
    db.refresh(case)
    assert case.status == CaseStatus.ACTIVE
    assert case.end_date is None


def test_close_sets_end_date_and_reopen_clears_it(db, lawyer, make_case):
    case = make_case(status=CaseStatus.ACTIVE)
    _add_hearing(db, lawyer, case)
    lifecycle = CaseLifecycle(db)

    closed = lifecycle.update_status(actor_for(lawyer), case.id, CaseStatus.CLOSED)
    assert closed.status == CaseStatus.CLOSED
    assert closed.end_date is not None

    reopened = lifecycle.update_status(actor_for(lawyer), case.id, CaseStatus.ACTIVE)
    assert reopened.status == CaseStatus.ACTIVE
    assert reopened.end_date is None


def test_minimum_hearings_is_configurable(db, lawyer, make_case, monkeypatch):
    monkeypatch.setattr(config, "MIN_HEARINGS_TO_CLOSE", 2)
    case = make_case(status=CaseStatus.ACTIVE)
    _add_hearing(db, lawyer, case)

    with pytest.raises(BusinessRuleRejection):
        CaseLifecycle(db).update_status(actor_for(lawyer), case.id, CaseStatus.CLOSED)

    _add_hearing(db, lawyer, case, days_ahead=4)
    assert CaseLifecycle(db).update_status(actor_for(lawyer), case.id, CaseStatus.CLOSED).status == CaseStatus.CLOSED


def test_admin_activation_also_needs_advance(db, admin, make_case):
    case = make_case()

    with pytest.raises(BusinessRuleRejection):
        CaseLifecycle(db).update_status(actor_for(admin), case.id, CaseStatus.ACTIVE)


def test_client_cannot_change_status(db, client_user, make_case):
    case = make_case(status=CaseStatus.ACTIVE)

    with pytest.raises(AccessDenied):
        CaseLifecycle(db).update_status(actor_for(client_user), case.id, CaseStatus.CLOSED)


def test_closed_case_rejects_new_hearings(db, lawyer, make_case):
    case = make_case(status=CaseStatus.CLOSED)

    with pytest.raises(BusinessRuleRejection) as exc:
        _add_hearing(db, lawyer, case)
    assert exc.value.detail == "Action not allowed: case is closed."


@pytest.mark.parametrize("actor_fixture", ["lawyer", "admin"])
def test_activation_through_status_update_notifies_like_accept(db, request, lawyer, client_user, make_case, actor_fixture):
    case = make_case(payment_status=PaymentStatus.ADVANCE_PAID)
    actor = request.getfixturevalue(actor_fixture)

    case = CaseLifecycle(db).update_status(actor_for(actor), case.id, CaseStatus.ACTIVE)

    assert case.status == CaseStatus.ACTIVE
    notes = db.query(NotificationItem).all()
    by_target = {(n.for_user_id, n.title) for n in notes}
    assert (client_user.id, "Case Accepted") in by_target
    assert (None, "Case Accepted") in by_target
    assert (lawyer.id, "Case Activated") in by_target
    assert not any(n.title == "Case Status Updated" for n in notes)
