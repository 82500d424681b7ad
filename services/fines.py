"""
Fines Accrual Engine
Computes what a late loan owes and posts new debits to the fines ledger.
"""

import logging
import sqlite3
from typing import Optional, Tuple

from database import get_member_balance, get_total_debited_for_loan, insert_fine
from .due_dates import _as_date, days_overdue
from .models import FineEntry, Loan, LoanRule, _monetize

logger = logging.getLogger(__name__)

def calculate_fine(loan: Loan, rule: LoanRule, as_of) -> Tuple[float, int, int]:
    """
    Total fine owed by ``loan`` as of a date.

    A returned loan stops accruing on its return date.

    Returns:
        tuple: (amount, overdue_days, chargeable_days)
    """
    end = _as_date(as_of)
    if loan.return_date is not None and loan.return_date < end:
        end = loan.return_date
    overdue = days_overdue(loan.due_date, end)
    chargeable = max(0, overdue - rule.grace_periode)
    return _monetize(chargeable * rule.fine_each_day), overdue, chargeable


def fine_description(loan: Loan, overdue_days: int) -> str:
    return f"Overdue fine for item {loan.item_code} (loan {loan.loan_id}), {overdue_days} day(s) late"


def accrue_fine(conn: sqlite3.Connection, loan: Loan, rule: LoanRule, as_of) -> Optional[FineEntry]:
    """
    Append a debit for whatever the loan owes beyond what it was already charged.

    Must run inside ``database.transaction`` so the lookup and the insert see
    the same ledger. Returns the new entry, or None when nothing new is owed.
    """
    as_of = _as_date(as_of)
    amount, overdue, _ = calculate_fine(loan, rule, as_of)
    if amount <= 0:
        return None

    charged = get_total_debited_for_loan(conn, loan.loan_id)
    delta = _monetize(amount - charged)
    if delta <= 0:
        return None

    description = fine_description(loan, overdue)
    fines_id = insert_fine(
        conn,
        member_id=loan.member_id,
        fines_date=as_of,
        debet=delta,
        description=description,
        loan_id=loan.loan_id,
        item_code=loan.item_code,
    )
    if fines_id is None:
        # another writer already posted today's debit for this loan
        return None

    logger.info("fine %.2f posted for loan %s (member %s)", delta, loan.loan_id, loan.member_id)
    return FineEntry(
        fines_id=fines_id,
        member_id=loan.member_id,
        fines_date=as_of,
        debet=delta,
        description=description,
        loan_id=loan.loan_id,
        item_code=loan.item_code,
    )


def outstanding_balance(conn: sqlite3.Connection, member_id: str) -> float:
    return _monetize(get_member_balance(conn, member_id))
