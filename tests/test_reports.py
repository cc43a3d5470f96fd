from datetime import datetime
from decimal import Decimal

import pytest

from lawfirm.exceptions import ValidationRejection
from lawfirm.models import CaseStatus, PaymentStage, UserRole
from lawfirm.services.payment_service import GatewayCallback, PaymentService
from lawfirm.services.report_service import ReportService, ReportType, months_before, report_period

from conftest import actor_for

NOW = datetime(2026, 3, 31, 15, 0)


def test_months_before_clamps_to_month_end():
    assert months_before(NOW, 1) == datetime(2026, 2, 28, 15, 0)
    assert months_before(datetime(2026, 1, 15), 1) == datetime(2025, 12, 15)
    assert months_before(NOW, 12) == datetime(2025, 3, 31, 15, 0)


def test_report_periods():
    assert report_period(ReportType.DAILY, now=NOW)[0] == datetime(2026, 3, 31)
    assert report_period(ReportType.WEEKLY, now=NOW) == (datetime(2026, 3, 24, 15, 0), NOW)
    assert report_period(ReportType.CUSTOM, now=NOW) == (datetime(2026, 2, 28, 15, 0), NOW)


def test_custom_period_must_be_ordered():
    with pytest.raises(ValidationRejection):
        report_period(ReportType.CUSTOM, start=NOW, end=datetime(2026, 1, 1))


def test_revenue_is_scoped_by_role(db, admin, lawyer, client_user, make_case):
    case = make_case()
    make_case(status=CaseStatus.CLOSED)
    PaymentService(db).reconcile(GatewayCallback(
        tran_id="TXN-R1", amount="50000", value_a=case.id, value_b=PaymentStage.FULL.value
    ))
    reports = ReportService(db)

    admin_report = reports.build_report(actor_for(admin), ReportType.MONTHLY)
    lawyer_report = reports.build_report(actor_for(lawyer), ReportType.MONTHLY)
    client_report = reports.build_report(actor_for(client_user), ReportType.MONTHLY)

    assert admin_report.total_revenue == Decimal("50000.00")
    assert lawyer_report.total_revenue == Decimal("45000.00")
    assert client_report.total_revenue == Decimal("50000.00")
    assert admin_report.total_cases == 2
    assert admin_report.new_cases == 1
    assert admin_report.closed_cases == 1
    assert len(admin_report.payments) == 1


def test_other_clients_see_nothing(db, make_user, make_case):
    make_case()
    stranger = make_user(UserRole.CLIENT)

    report = ReportService(db).build_report(actor_for(stranger), ReportType.YEARLY)

    assert report.total_cases == 0
    assert report.total_revenue == Decimal("0.00")
