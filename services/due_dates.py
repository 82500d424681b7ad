"""Due-date arithmetic. Calendar days only, no time zones."""

from datetime import date, datetime, timedelta

from .models import Loan, LoanRule


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_due_date(loan_date, rule: LoanRule) -> date:
    return _as_date(loan_date) + timedelta(days=rule.loan_periode)


def compute_renewal_due_date(loan: Loan, rule: LoanRule, renewal_date) -> date:
    """
    New due date counted from the renewal day. Never earlier than the
    loan's current due date.
    """
    candidate = _as_date(renewal_date) + timedelta(days=rule.loan_periode)
    return max(candidate, loan.due_date)


def days_overdue(due_date, as_of) -> int:
    return max(0, (_as_date(as_of) - _as_date(due_date)).days)
