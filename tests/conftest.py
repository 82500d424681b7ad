from datetime import date

import pytest

from database import (
    get_db_connection, init_database, insert_loan, insert_loan_rule, transaction,
)
from services.models import LoanRule

DAY0 = date(2024, 3, 1)

MEMBER_ID = "100001"
OTHER_MEMBER_ID = "100002"


@pytest.fixture
def rule():
    """Loan period 14, one renewal, 500 per day, one day of grace."""
    return LoanRule(
        loan_rules_id=1, member_type_id=1, coll_type_id=1, gmd_id=None,
        loan_limit=2, loan_periode=14, reborrow_limit=1,
        fine_each_day=500.0, grace_periode=1,
    )


@pytest.fixture
def db_conn(tmp_path):
    conn = get_db_connection(str(tmp_path / "library_test.db"))
    init_database(conn)
    with transaction(conn):
        conn.execute("INSERT INTO mst_member_type VALUES (1, 'Student'), (2, 'Staff')")
        conn.execute("INSERT INTO mst_coll_type VALUES (1, 'Textbook'), (2, 'Reference'), (3, 'Fiction')")
        conn.execute("INSERT INTO mst_gmd VALUES (1, 'Text')")
        insert_loan_rule(conn, 1, 1, None, loan_limit=2, loan_periode=14,
                         reborrow_limit=1, fine_each_day=500, grace_periode=1)
        insert_loan_rule(conn, 1, 3, None, loan_limit=1, loan_periode=7,
                         reborrow_limit=0, fine_each_day=1000, grace_periode=0)
        conn.execute(
            "INSERT INTO member VALUES (?, 'Sari', 1, '2030-12-31'), (?, 'Budi', 1, '2030-12-31')",
            (MEMBER_ID, OTHER_MEMBER_ID),
        )
        conn.executemany(
            "INSERT INTO item (item_code, title, coll_type_id, gmd_id) VALUES (?, ?, ?, ?)",
            [("B0001", "Algorithms", 1, 1),
             ("B0002", "Compilers", 1, 1),
             ("B0003", "Operating Systems", 1, 1),
             ("F0001", "Laskar Pelangi", 3, 1),
             ("R0001", "Dictionary", 2, 1)],
        )
    yield conn
    conn.close()


@pytest.fixture
def make_loan(db_conn):
    """Insert an outstanding loan made on ``loan_date`` and due 14 days later."""
    def _make(item_code="B0001", member_id=MEMBER_ID, loan_date=DAY0, due_date=None, renewed=0):
        due = due_date or date.fromordinal(loan_date.toordinal() + 14)
        with transaction(db_conn):
            loan_id = insert_loan(db_conn, member_id, item_code, loan_date, due)
            if renewed:
                db_conn.execute("UPDATE loan SET renewed = ? WHERE loan_id = ?", (renewed, loan_id))
        return loan_id
    return _make
