"""
Domain records for the loan & fines policy engine.

Rows come out of ``database`` as plain dicts; ``from_row`` turns them into
these dataclasses so the policy functions work on typed values with real
``date`` objects.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


MEMBER = "member"
LIBRARIAN = "librarian"
ADMIN = "admin"
ROLES = (MEMBER, LIBRARIAN, ADMIN)
STAFF_ROLES = (LIBRARIAN, ADMIN)


def _parse_date(val) -> Optional[date]:
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return datetime.fromisoformat(text).date()


def _monetize(amount) -> float:
    return float(f"{float(amount or 0):.2f}")


@dataclass(frozen=True)
class LoanRule:
    """Borrowing policy for a (member type, collection type, material type) combination.

    A ``None`` dimension matches any value.
    """

    loan_rules_id: int
    member_type_id: Optional[int] = None
    coll_type_id: Optional[int] = None
    gmd_id: Optional[int] = None
    loan_limit: int = 0
    loan_periode: int = 0
    reborrow_limit: int = 0
    fine_each_day: float = 0.0
    grace_periode: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LoanRule":
        periode = int(row.get("loan_periode") or 0)
        if periode < 0:
            raise ValueError(f"loan rule {row.get('loan_rules_id')} has a negative loan period")
        return cls(
            loan_rules_id=row["loan_rules_id"],
            member_type_id=row.get("member_type_id"),
            coll_type_id=row.get("coll_type_id"),
            gmd_id=row.get("gmd_id"),
            loan_limit=int(row.get("loan_limit") or 0),
            loan_periode=periode,
            reborrow_limit=int(row.get("reborrow_limit") or 0),
            fine_each_day=_monetize(row.get("fine_each_day")),
            # negative grace behaves as no grace
            grace_periode=max(0, int(row.get("grace_periode") or 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Loan:
    loan_id: int
    member_id: str
    item_code: str
    loan_date: date
    due_date: date
    renewed: int = 0
    return_date: Optional[date] = None
    # lookup keys for rule resolution, joined in from item/member
    member_type_id: Optional[int] = None
    coll_type_id: Optional[int] = None
    gmd_id: Optional[int] = None
    title: Optional[str] = None

    @property
    def is_returned(self) -> bool:
        return self.return_date is not None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Loan":
        return cls(
            loan_id=row["loan_id"],
            member_id=row["member_id"],
            item_code=row["item_code"],
            loan_date=_parse_date(row["loan_date"]),
            due_date=_parse_date(row["due_date"]),
            renewed=int(row.get("renewed") or 0),
            return_date=_parse_date(row.get("return_date")),
            member_type_id=row.get("member_type_id"),
            coll_type_id=row.get("coll_type_id"),
            gmd_id=row.get("gmd_id"),
            title=row.get("title"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loan_id": self.loan_id,
            "member_id": self.member_id,
            "item_code": self.item_code,
            "title": self.title,
            "loan_date": self.loan_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "renewed": self.renewed,
            "return_date": self.return_date.isoformat() if self.return_date else None,
        }


@dataclass(frozen=True)
class FineEntry:
    """One append-only ledger line."""

    fines_id: Optional[int]
    member_id: str
    fines_date: date
    debet: float = 0.0
    credit: float = 0.0
    description: str = ""
    loan_id: Optional[int] = None
    item_code: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "FineEntry":
        return cls(
            fines_id=row["fines_id"],
            member_id=row["member_id"],
            fines_date=_parse_date(row["fines_date"]),
            debet=_monetize(row.get("debet")),
            credit=_monetize(row.get("credit")),
            description=row.get("description") or "",
            loan_id=row.get("loan_id"),
            item_code=row.get("item_code"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["fines_date"] = self.fines_date.isoformat()
        return data


@dataclass
class RenewalResult:
    success: bool
    message: str
    loan: Optional[Loan] = None

    @property
    def due_date(self) -> Optional[date]:
        return self.loan.due_date if self.loan else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reason": "" if self.success else self.message,
            "message": self.message,
            "loan": self.loan.to_dict() if self.loan else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
        }


@dataclass
class DuesSummary:
    member_id: str
    fines: List[FineEntry] = field(default_factory=list)
    total_outstanding: float = 0.0
    loans: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_id": self.member_id,
            "fines": [f.to_dict() for f in self.fines],
            "total_outstanding": self.total_outstanding,
            "loans": self.loans,
        }


@dataclass
class CheckoutResult:
    success: bool
    message: str
    loan: Optional[Loan] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reason": "" if self.success else self.message,
            "message": self.message,
            "loan": self.loan.to_dict() if self.loan else None,
        }


@dataclass
class ReturnResult:
    success: bool
    message: str
    loan: Optional[Loan] = None
    fine: Optional[FineEntry] = None
    fee_amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reason": "" if self.success else self.message,
            "message": self.message,
            "loan": self.loan.to_dict() if self.loan else None,
            "fine": self.fine.to_dict() if self.fine else None,
            "fee_amount": self.fee_amount,
        }
