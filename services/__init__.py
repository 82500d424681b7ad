"""Loan & fines policy engine."""

from .circulation_policy import (
    attempt_renewal,
    checkout_item,
    get_dues_summary,
    list_member_rules,
    return_item,
)
from .loan_rules import AmbiguousRuleError, LoanPolicyError, NoApplicableRuleError

__all__ = [
    "attempt_renewal",
    "checkout_item",
    "get_dues_summary",
    "list_member_rules",
    "return_item",
    "AmbiguousRuleError",
    "LoanPolicyError",
    "NoApplicableRuleError",
]
