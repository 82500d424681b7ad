"""
Loan Rule Resolver
Picks the single loan rule governing a member type / collection type /
material type combination out of the mst_loan_rules reference rows.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from .models import LoanRule

logger = logging.getLogger(__name__)

DIMENSIONS = ("member_type_id", "coll_type_id", "gmd_id")


class LoanPolicyError(Exception):
    """Data-integrity fault in the loan rule tables. Callers must abort."""


class NoApplicableRuleError(LoanPolicyError):
    def __init__(self, member_type_id, coll_type_id, gmd_id):
        self.member_type_id = member_type_id
        self.coll_type_id = coll_type_id
        self.gmd_id = gmd_id
        super().__init__(
            f"No loan rule for member type {member_type_id}, "
            f"collection type {coll_type_id}, material type {gmd_id}"
        )


class AmbiguousRuleError(LoanPolicyError):
    def __init__(self, rule_ids: Sequence[int], specificity: int):
        self.rule_ids = list(rule_ids)
        self.specificity = specificity
        super().__init__(
            f"Loan rules {self.rule_ids} tie at specificity {specificity}"
        )


def rule_specificity(rule: LoanRule) -> int:
    """Number of non-wildcard dimensions."""
    return sum(1 for dim in DIMENSIONS if getattr(rule, dim) is not None)


def rule_matches(rule: LoanRule, member_type_id, coll_type_id, gmd_id) -> bool:
    wanted = {"member_type_id": member_type_id, "coll_type_id": coll_type_id, "gmd_id": gmd_id}
    for dim in DIMENSIONS:
        value = getattr(rule, dim)
        if value is not None and value != wanted[dim]:
            return False
    return True


def resolve_loan_rule(rules: Iterable[LoanRule], member_type_id: Optional[int],
                      coll_type_id: Optional[int], gmd_id: Optional[int] = None) -> LoanRule:
    """
    Return the most specific rule matching the inputs.

    Raises:
        NoApplicableRuleError: nothing matches.
        AmbiguousRuleError: two or more rules match with the same, highest
            number of specific dimensions.
    """
    candidates: List[LoanRule] = [
        r for r in rules if rule_matches(r, member_type_id, coll_type_id, gmd_id)
    ]
    if not candidates:
        logger.error("no loan rule for member_type=%s coll_type=%s gmd=%s",
                     member_type_id, coll_type_id, gmd_id)
        raise NoApplicableRuleError(member_type_id, coll_type_id, gmd_id)

    best = max(rule_specificity(r) for r in candidates)
    top = [r for r in candidates if rule_specificity(r) == best]
    if len(top) > 1:
        ids = sorted(r.loan_rules_id for r in top)
        logger.error("ambiguous loan rules %s at specificity %d", ids, best)
        raise AmbiguousRuleError(ids, best)
    return top[0]
