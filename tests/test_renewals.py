from dataclasses import replace
from datetime import date, timedelta

import pytest

from services.models import Loan
from services.renewals import (
    ALREADY_RETURNED, ITEM_OVERDUE, OUTSTANDING_FINES, RENEWAL_LIMIT_REACHED,
    check_renewal_eligibility, renew_loan,
)

from conftest import DAY0

DUE = DAY0 + timedelta(days=14)


@pytest.fixture
def loan():
    return Loan(loan_id=10, member_id="100001", item_code="B0001", loan_date=DAY0, due_date=DUE)


def test_eligible_before_due_date(loan, rule):
    assert check_renewal_eligibility(loan, rule, 0, DAY0 + timedelta(days=10)) == (True, "")


def test_limit_reached_is_denied(loan, rule):
    used = replace(loan, renewed=1)
    assert check_renewal_eligibility(used, rule, 0, DAY0 + timedelta(days=10)) == (False, RENEWAL_LIMIT_REACHED)


def test_rule_without_renewals_denies_first_renewal(loan, rule):
    no_renewals = replace(rule, reborrow_limit=0)
    ok, reason = check_renewal_eligibility(loan, no_renewals, 0, DAY0)
    assert ok is False
    assert reason == RENEWAL_LIMIT_REACHED


def test_outstanding_balance_is_denied(loan, rule):
    assert check_renewal_eligibility(loan, rule, 500, DAY0 + timedelta(days=10)) == (False, OUTSTANDING_FINES)


def test_credit_balance_does_not_block(loan, rule):
    ok, _ = check_renewal_eligibility(loan, rule, -200, DAY0 + timedelta(days=10))
    assert ok is True


def test_renewal_allowed_inside_grace_window(loan, rule):
    ok, _ = check_renewal_eligibility(loan, rule, 0, DUE + timedelta(days=1))
    assert ok is True


def test_overdue_past_grace_is_denied(loan, rule):
    assert check_renewal_eligibility(loan, rule, 0, DUE + timedelta(days=2)) == (False, ITEM_OVERDUE)


def test_returned_loan_reports_already_returned_first(loan, rule):
    # fails every other check too
    bad = replace(loan, renewed=5, return_date=DUE + timedelta(days=30))
    assert check_renewal_eligibility(bad, rule, 9999, DUE + timedelta(days=40)) == (False, ALREADY_RETURNED)


def test_limit_checked_before_fines(loan, rule):
    used = replace(loan, renewed=1)
    _, reason = check_renewal_eligibility(used, rule, 500, DUE + timedelta(days=10))
    assert reason == RENEWAL_LIMIT_REACHED


def test_fines_checked_before_overdue(loan, rule):
    _, reason = check_renewal_eligibility(loan, rule, 500, DUE + timedelta(days=10))
    assert reason == OUTSTANDING_FINES


def test_renew_loan_updates_count_and_due_date_together(loan, rule):
    renewed = renew_loan(loan, rule, DAY0 + timedelta(days=10))
    assert renewed.renewed == 1
    assert renewed.due_date == DAY0 + timedelta(days=24)
    # original is untouched
    assert loan.renewed == 0
    assert loan.due_date == DUE


def test_renew_within_grace_extends_from_renewal_day(loan, rule):
    renewed = renew_loan(loan, rule, DUE + timedelta(days=1))
    assert renewed.due_date == DUE + timedelta(days=15)
