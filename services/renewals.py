"""
Renewal Eligibility Checker
Decides whether a loan may be renewed and produces the renewed loan.
"""

from dataclasses import replace
from typing import Tuple

from .due_dates import compute_renewal_due_date, days_overdue
from .models import Loan, LoanRule

ALREADY_RETURNED = "already returned"
RENEWAL_LIMIT_REACHED = "renewal limit reached"
OUTSTANDING_FINES = "outstanding fines"
ITEM_OVERDUE = "item overdue"


def check_renewal_eligibility(loan: Loan, rule: LoanRule, balance: float, as_of) -> Tuple[bool, str]:
    """
    Run the renewal checks in fixed order; the first failure is reported.

    Args:
        loan: the loan to renew
        rule: its governing loan rule
        balance: member's outstanding ledger balance
        as_of: renewal date

    Returns:
        tuple: (eligible: bool, reason: str), reason is empty when eligible
    """
    if loan.is_returned:
        return False, ALREADY_RETURNED

    if loan.renewed >= rule.reborrow_limit:
        return False, RENEWAL_LIMIT_REACHED

    if balance > 0:
        return False, OUTSTANDING_FINES

    # renewal is still allowed inside the grace window
    if days_overdue(loan.due_date, as_of) > rule.grace_periode:
        return False, ITEM_OVERDUE

    return True, ""


def renew_loan(loan: Loan, rule: LoanRule, as_of) -> Loan:
    """Return a copy of ``loan`` with the renewal applied."""
    return replace(
        loan,
        renewed=loan.renewed + 1,
        due_date=compute_renewal_due_date(loan, rule, as_of),
    )
