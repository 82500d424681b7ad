from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from services.due_dates import compute_due_date, compute_renewal_due_date, days_overdue
from services.models import Loan

from conftest import DAY0


def _loan(due):
    return Loan(loan_id=1, member_id="100001", item_code="B0001", loan_date=DAY0, due_date=due)


def test_due_date_adds_loan_period(rule):
    assert compute_due_date(DAY0, rule) == DAY0 + timedelta(days=14)


def test_due_date_crosses_month_and_leap_day(rule):
    assert compute_due_date(date(2024, 2, 20), rule) == date(2024, 3, 5)


def test_due_date_ignores_time_of_day(rule):
    assert compute_due_date(datetime(2024, 3, 1, 23, 59), rule) == date(2024, 3, 15)


def test_renewal_counts_from_renewal_day(rule):
    loan = _loan(DAY0 + timedelta(days=14))
    assert compute_renewal_due_date(loan, rule, DAY0 + timedelta(days=10)) == DAY0 + timedelta(days=24)


def test_renewal_never_shortens_due_date(rule):
    zero_period = replace(rule, loan_periode=0)
    loan = _loan(DAY0 + timedelta(days=14))
    assert compute_renewal_due_date(loan, zero_period, DAY0 + timedelta(days=3)) == loan.due_date


@pytest.mark.parametrize("offset", [0, 1, 5, 13, 14, 20])
def test_renewal_due_date_is_monotonic(rule, offset):
    loan = _loan(DAY0 + timedelta(days=14))
    assert compute_renewal_due_date(loan, rule, DAY0 + timedelta(days=offset)) >= loan.due_date


@pytest.mark.parametrize(
    "as_of_offset, expected",
    [(-3, 0), (0, 0), (1, 1), (16, 16)],
)
def test_days_overdue_clamps_at_zero(as_of_offset, expected):
    assert days_overdue(DAY0, DAY0 + timedelta(days=as_of_offset)) == expected
