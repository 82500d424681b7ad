"""
Circulation Policy - entry points called by the request handlers
Composes rule resolution, fines accrual, renewal eligibility and due-date
arithmetic. Every operation runs in one write transaction, so checks and the
mutation they guard see the same loan and ledger state.
"""

import logging
import sqlite3
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional

from database import (
    count_active_loans, get_active_loan_for_item, get_active_loans_for_member,
    get_fines_for_member, get_item_by_code, get_loan_by_id,
    get_loan_rules_for_member_type, get_member_by_id, insert_loan,
    transaction, update_loan_renewal, update_loan_return,
)
from .due_dates import compute_due_date
from .fines import accrue_fine, calculate_fine, outstanding_balance
from .loan_rules import resolve_loan_rule
from .models import (
    MEMBER, ROLES, STAFF_ROLES, CheckoutResult, DuesSummary, FineEntry, Loan,
    LoanRule, RenewalResult, ReturnResult, _monetize, _parse_date,
)
from .renewals import (
    ALREADY_RETURNED, OUTSTANDING_FINES, check_renewal_eligibility, renew_loan,
)

logger = logging.getLogger(__name__)

LOAN_NOT_FOUND = "loan not found"
MEMBER_NOT_FOUND = "member not found"
ITEM_NOT_FOUND = "item not found"
ITEM_ON_LOAN = "item already on loan"
MEMBERSHIP_EXPIRED = "membership expired"
COLLECTION_LIMIT_REACHED = "loan limit reached for this collection type"
TOTAL_LIMIT_REACHED = "total loan limit reached"

FINE_ON_TIME = "on_time"
FINE_IN_GRACE = "in_grace"
FINE_CHARGED = "has_fine"


def _require_role(role: str, allowed) -> None:
    if role not in allowed:
        raise PermissionError(f"role {role!r} is not allowed to perform this operation")


def _rules_for(conn: sqlite3.Connection, member_type_id) -> List[LoanRule]:
    return [LoanRule.from_row(r) for r in get_loan_rules_for_member_type(conn, member_type_id)]


def _rule_for_loan(conn: sqlite3.Connection, loan: Loan) -> LoanRule:
    return resolve_loan_rule(_rules_for(conn, loan.member_type_id),
                             loan.member_type_id, loan.coll_type_id, loan.gmd_id)


def get_dues_summary(conn: sqlite3.Connection, member_id: str, role: str = MEMBER,
                     as_of: Optional[date] = None) -> DuesSummary:
    """
    Bring the member's ledger up to date and report it.

    Each active overdue loan is accrued as of ``as_of`` (today by default)
    before the ledger is read back and summed.
    """
    _require_role(role, ROLES)
    as_of = as_of or date.today()

    with transaction(conn):
        loans = [Loan.from_row(r) for r in get_active_loans_for_member(conn, member_id)]
        rules = _rules_for(conn, loans[0].member_type_id) if loans else []

        breakdown = []
        for loan in loans:
            rule = resolve_loan_rule(rules, loan.member_type_id, loan.coll_type_id, loan.gmd_id)
            amount, overdue, chargeable = calculate_fine(loan, rule, as_of)
            if chargeable > 0:
                accrue_fine(conn, loan, rule, as_of)
                status = FINE_CHARGED
            elif overdue > 0:
                status = FINE_IN_GRACE
            else:
                status = FINE_ON_TIME
            breakdown.append({
                "loan_id": loan.loan_id,
                "item_code": loan.item_code,
                "title": loan.title,
                "due_date": loan.due_date.isoformat(),
                "renewed": loan.renewed,
                "reborrow_limit": rule.reborrow_limit,
                "days_overdue": overdue,
                "chargeable_days": chargeable,
                "fine_per_day": rule.fine_each_day,
                "fine_amount": amount,
                "fine_status": status,
            })

        fines = [FineEntry.from_row(r) for r in get_fines_for_member(conn, member_id)]
        total = outstanding_balance(conn, member_id)

    return DuesSummary(member_id=member_id, fines=fines, total_outstanding=total, loans=breakdown)


def attempt_renewal(conn: sqlite3.Connection, loan_id: int, member_id: str, role: str = MEMBER,
                    as_of: Optional[date] = None) -> RenewalResult:
    """
    Renew a loan if policy allows.

    Members may only renew their own loans; staff may renew any loan.
    Late fines for the loan are posted before eligibility is checked.

    Returns:
        RenewalResult: success flag, the denial reason or a confirmation
        message, and the (possibly updated) loan
    """
    _require_role(role, ROLES)
    as_of = as_of or date.today()

    with transaction(conn):
        row = get_loan_by_id(conn, loan_id)
        if row is None or (role == MEMBER and row["member_id"] != member_id):
            return RenewalResult(False, LOAN_NOT_FOUND)

        loan = Loan.from_row(row)
        rule = _rule_for_loan(conn, loan)
        if not loan.is_returned:
            accrue_fine(conn, loan, rule, as_of)
        balance = outstanding_balance(conn, loan.member_id)

        eligible, reason = check_renewal_eligibility(loan, rule, balance, as_of)
        if not eligible:
            logger.info("renewal of loan %s denied: %s", loan.loan_id, reason)
            return RenewalResult(False, reason, loan)

        renewed = renew_loan(loan, rule, as_of)
        if not update_loan_renewal(conn, renewed.loan_id, renewed.renewed, renewed.due_date):
            raise sqlite3.DatabaseError(f"loan {loan.loan_id} changed during renewal")

    logger.info("loan %s renewed (%d/%d), due %s", renewed.loan_id, renewed.renewed,
                rule.reborrow_limit, renewed.due_date.isoformat())
    return RenewalResult(True, f'Loan renewed. New due date: {renewed.due_date.strftime("%Y-%m-%d")}.', renewed)


def checkout_item(conn: sqlite3.Connection, member_id: str, item_code: str, role: str,
                  as_of: Optional[date] = None) -> CheckoutResult:
    """
    Lend an item to a member (staff only).

    Checks, in order: member and item exist, item is free, membership is
    current, no unpaid fines, a rule applies, the per-collection limit and
    the member type's overall limit.
    """
    _require_role(role, STAFF_ROLES)
    as_of = as_of or date.today()

    with transaction(conn):
        member = get_member_by_id(conn, member_id)
        if not member:
            return CheckoutResult(False, MEMBER_NOT_FOUND)

        item = get_item_by_code(conn, item_code)
        if not item:
            return CheckoutResult(False, ITEM_NOT_FOUND)

        if get_active_loan_for_item(conn, item_code):
            return CheckoutResult(False, ITEM_ON_LOAN)

        expire = _parse_date(member.get("expire_date"))
        if expire is not None and expire < as_of:
            return CheckoutResult(False, MEMBERSHIP_EXPIRED)

        if outstanding_balance(conn, member_id) > 0:
            return CheckoutResult(False, OUTSTANDING_FINES)

        member_type_id = member["member_type_id"]
        rules = _rules_for(conn, member_type_id)
        rule = resolve_loan_rule(rules, member_type_id, item["coll_type_id"], item["gmd_id"])

        if count_active_loans(conn, member_id, item["coll_type_id"], all_collections=False) >= rule.loan_limit:
            return CheckoutResult(False, COLLECTION_LIMIT_REACHED)

        total_limit = sum(r.loan_limit for r in rules)
        if count_active_loans(conn, member_id) >= total_limit:
            return CheckoutResult(False, TOTAL_LIMIT_REACHED)

        due_date = compute_due_date(as_of, rule)
        loan_id = insert_loan(conn, member_id, item_code, as_of, due_date)
        loan = Loan.from_row(get_loan_by_id(conn, loan_id))

    logger.info("item %s lent to member %s as loan %s, due %s",
                item_code, member_id, loan.loan_id, loan.due_date.isoformat())
    return CheckoutResult(True, f'Successfully borrowed "{item["title"]}". Due date: {loan.due_date.strftime("%Y-%m-%d")}.', loan)


def return_item(conn: sqlite3.Connection, loan_id: int, role: str,
                as_of: Optional[date] = None) -> ReturnResult:
    """Check a loan back in, posting any fine still owed (staff only)."""
    _require_role(role, STAFF_ROLES)
    as_of = as_of or date.today()

    with transaction(conn):
        row = get_loan_by_id(conn, loan_id)
        if row is None:
            return ReturnResult(False, LOAN_NOT_FOUND)

        loan = Loan.from_row(row)
        if loan.is_returned:
            return ReturnResult(False, ALREADY_RETURNED, loan)

        rule = _rule_for_loan(conn, loan)
        fine = accrue_fine(conn, loan, rule, as_of)
        if not update_loan_return(conn, loan.loan_id, as_of):
            raise sqlite3.DatabaseError(f"loan {loan.loan_id} changed during return")

        returned = replace(loan, return_date=as_of)
        fee_amount, overdue, _ = calculate_fine(returned, rule, as_of)

    logger.info("loan %s returned, %d day(s) overdue", loan.loan_id, overdue)
    if fee_amount > 0:
        message = f'Returned "{loan.title}". Late fee: {fee_amount:.2f} (overdue by {overdue} day(s)).'
    else:
        message = f'Returned "{loan.title}" on time. No late fee.'
    return ReturnResult(True, message, returned, fine, _monetize(fee_amount))


def list_member_rules(conn: sqlite3.Connection, member_id: str) -> List[Dict]:
    """Loan rules that can apply to the member's type, wildcards included."""
    member = get_member_by_id(conn, member_id)
    if not member:
        return []
    rows = get_loan_rules_for_member_type(conn, member["member_type_id"])
    listed = []
    for row in rows:
        entry = LoanRule.from_row(row).to_dict()
        entry["member_type_name"] = row.get("member_type_name") or "Any"
        entry["coll_type_name"] = row.get("coll_type_name") or "Any"
        listed.append(entry)
    return listed
