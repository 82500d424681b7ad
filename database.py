"""
Database Module - SQLite storage for the circulation portal
Holds the schema, the row lookups used by the policy engine, and the
transaction helper that serializes read-check-mutate sequences.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional

DATABASE = 'library.db'
DEFAULT_TIMEOUT = 5.0

SCHEMA = """
CREATE TABLE IF NOT EXISTS mst_member_type (
    member_type_id INTEGER PRIMARY KEY,
    member_type_name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mst_coll_type (
    coll_type_id INTEGER PRIMARY KEY,
    coll_type_name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mst_gmd (
    gmd_id INTEGER PRIMARY KEY,
    gmd_name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mst_loan_rules (
    loan_rules_id INTEGER PRIMARY KEY AUTOINCREMENT,
    member_type_id INTEGER REFERENCES mst_member_type(member_type_id),
    coll_type_id INTEGER REFERENCES mst_coll_type(coll_type_id),
    gmd_id INTEGER REFERENCES mst_gmd(gmd_id),
    loan_limit INTEGER NOT NULL DEFAULT 0,
    loan_periode INTEGER NOT NULL DEFAULT 0,
    reborrow_limit INTEGER NOT NULL DEFAULT 0,
    fine_each_day REAL NOT NULL DEFAULT 0,
    grace_periode INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS member (
    member_id TEXT PRIMARY KEY,
    member_name TEXT NOT NULL,
    member_type_id INTEGER REFERENCES mst_member_type(member_type_id),
    expire_date TEXT
);

CREATE TABLE IF NOT EXISTS item (
    item_code TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    coll_type_id INTEGER REFERENCES mst_coll_type(coll_type_id),
    gmd_id INTEGER REFERENCES mst_gmd(gmd_id)
);

CREATE TABLE IF NOT EXISTS loan (
    loan_id INTEGER PRIMARY KEY AUTOINCREMENT,
    member_id TEXT NOT NULL REFERENCES member(member_id),
    item_code TEXT NOT NULL REFERENCES item(item_code),
    loan_date TEXT NOT NULL,
    due_date TEXT NOT NULL,
    renewed INTEGER NOT NULL DEFAULT 0,
    return_date TEXT,
    is_return INTEGER NOT NULL DEFAULT 0,
    last_update TEXT,
    CHECK (due_date >= loan_date)
);

CREATE TABLE IF NOT EXISTS fines (
    fines_id INTEGER PRIMARY KEY AUTOINCREMENT,
    member_id TEXT NOT NULL REFERENCES member(member_id),
    loan_id INTEGER REFERENCES loan(loan_id),
    item_code TEXT,
    fines_date TEXT NOT NULL,
    debet REAL NOT NULL DEFAULT 0,
    credit REAL NOT NULL DEFAULT 0,
    description TEXT
);

-- one accrual debit per loan per day
CREATE UNIQUE INDEX IF NOT EXISTS idx_fines_loan_day
    ON fines(loan_id, fines_date) WHERE debet > 0;
"""

LOAN_COLUMNS = """
    loan.loan_id, loan.member_id, loan.item_code, loan.loan_date,
    loan.due_date, loan.renewed, loan.return_date,
    item.title, item.coll_type_id, item.gmd_id,
    member.member_type_id
"""


def get_db_connection(db_path: Optional[str] = None, timeout: Optional[float] = None) -> sqlite3.Connection:
    """
    Open a connection with row access by column name.
    Transactions are managed explicitly through ``transaction``.
    """
    conn = sqlite3.connect(
        db_path or DATABASE,
        timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run a block under sqlite's writer lock.

    BEGIN IMMEDIATE takes the reserved lock up front, so two renewals of the
    same loan cannot both read the old renewal count. Waiting is bounded by
    the connection timeout; everything in the block commits or nothing does.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def init_database(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA)


def _to_dicts(rows) -> List[Dict]:
    return [dict(r) for r in rows]


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


# Members and items

def get_member_by_id(conn: sqlite3.Connection, member_id: str) -> Optional[Dict]:
    row = conn.execute(
        "SELECT member_id, member_name, member_type_id, expire_date FROM member WHERE member_id = ?",
        (member_id,),
    ).fetchone()
    return dict(row) if row else None


def get_item_by_code(conn: sqlite3.Connection, item_code: str) -> Optional[Dict]:
    row = conn.execute(
        "SELECT item_code, title, coll_type_id, gmd_id FROM item WHERE item_code = ?",
        (item_code,),
    ).fetchone()
    return dict(row) if row else None


# Loan rules

def get_loan_rules_for_member_type(conn: sqlite3.Connection, member_type_id: Optional[int]) -> List[Dict]:
    """Rules naming this member type plus the wildcard (NULL member type) rules."""
    rows = conn.execute(
        """
        SELECT lr.loan_rules_id, lr.member_type_id, lr.coll_type_id, lr.gmd_id,
               lr.loan_limit, lr.loan_periode, lr.reborrow_limit,
               lr.fine_each_day, lr.grace_periode,
               mt.member_type_name, ct.coll_type_name
        FROM mst_loan_rules lr
        LEFT JOIN mst_member_type mt ON lr.member_type_id = mt.member_type_id
        LEFT JOIN mst_coll_type ct ON lr.coll_type_id = ct.coll_type_id
        WHERE lr.member_type_id = ? OR lr.member_type_id IS NULL
        ORDER BY lr.loan_rules_id ASC
        """,
        (member_type_id,),
    ).fetchall()
    return _to_dicts(rows)


def insert_loan_rule(conn: sqlite3.Connection, member_type_id=None, coll_type_id=None, gmd_id=None,
                     loan_limit: int = 0, loan_periode: int = 0, reborrow_limit: int = 0,
                     fine_each_day: float = 0.0, grace_periode: int = 0) -> int:
    cur = conn.execute(
        """
        INSERT INTO mst_loan_rules (member_type_id, coll_type_id, gmd_id, loan_limit,
                                    loan_periode, reborrow_limit, fine_each_day, grace_periode)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (member_type_id, coll_type_id, gmd_id, loan_limit, loan_periode,
         reborrow_limit, fine_each_day, grace_periode),
    )
    return cur.lastrowid


# Loans

def get_loan_by_id(conn: sqlite3.Connection, loan_id: int) -> Optional[Dict]:
    row = conn.execute(
        f"""
        SELECT {LOAN_COLUMNS}
        FROM loan
        JOIN item ON loan.item_code = item.item_code
        JOIN member ON loan.member_id = member.member_id
        WHERE loan.loan_id = ?
        """,
        (loan_id,),
    ).fetchone()
    return dict(row) if row else None


def get_active_loans_for_member(conn: sqlite3.Connection, member_id: str) -> List[Dict]:
    rows = conn.execute(
        f"""
        SELECT {LOAN_COLUMNS}
        FROM loan
        JOIN item ON loan.item_code = item.item_code
        JOIN member ON loan.member_id = member.member_id
        WHERE loan.member_id = ? AND loan.is_return = 0
        ORDER BY loan.due_date ASC, loan.loan_id ASC
        """,
        (member_id,),
    ).fetchall()
    return _to_dicts(rows)


def get_active_loan_for_item(conn: sqlite3.Connection, item_code: str) -> Optional[Dict]:
    row = conn.execute(
        "SELECT loan_id, member_id FROM loan WHERE item_code = ? AND is_return = 0",
        (item_code,),
    ).fetchone()
    return dict(row) if row else None


def count_active_loans(conn: sqlite3.Connection, member_id: str, coll_type_id: Optional[int] = None,
                       all_collections: bool = True) -> int:
    """
    Count a member's outstanding loans. With ``all_collections=False`` only
    items of ``coll_type_id`` are counted; None then means items without a
    collection type.
    """
    if all_collections:
        row = conn.execute(
            "SELECT COUNT(*) AS total FROM loan WHERE member_id = ? AND is_return = 0",
            (member_id,),
        ).fetchone()
    else:
        row = conn.execute(
            """
            SELECT COUNT(*) AS total
            FROM loan l
            JOIN item i ON l.item_code = i.item_code
            WHERE l.member_id = ? AND i.coll_type_id IS ? AND l.is_return = 0
            """,
            (member_id, coll_type_id),
        ).fetchone()
    return int(row["total"])


def insert_loan(conn: sqlite3.Connection, member_id: str, item_code: str, loan_date, due_date) -> int:
    cur = conn.execute(
        """
        INSERT INTO loan (member_id, item_code, loan_date, due_date, renewed, is_return, last_update)
        VALUES (?, ?, ?, ?, 0, 0, datetime('now'))
        """,
        (member_id, item_code, _iso(loan_date), _iso(due_date)),
    )
    return cur.lastrowid


def update_loan_renewal(conn: sqlite3.Connection, loan_id: int, renewed: int, due_date) -> bool:
    """Write renewal count and due date in one statement."""
    cur = conn.execute(
        "UPDATE loan SET renewed = ?, due_date = ?, last_update = datetime('now') WHERE loan_id = ? AND is_return = 0",
        (renewed, _iso(due_date), loan_id),
    )
    return cur.rowcount == 1


def update_loan_return(conn: sqlite3.Connection, loan_id: int, return_date) -> bool:
    cur = conn.execute(
        "UPDATE loan SET return_date = ?, is_return = 1, last_update = datetime('now') WHERE loan_id = ? AND is_return = 0",
        (_iso(return_date), loan_id),
    )
    return cur.rowcount == 1


# Fines ledger

def get_fines_for_member(conn: sqlite3.Connection, member_id: str) -> List[Dict]:
    rows = conn.execute(
        """
        SELECT fines_id, member_id, loan_id, item_code, fines_date, debet, credit, description
        FROM fines
        WHERE member_id = ?
        ORDER BY fines_date DESC, fines_id DESC
        """,
        (member_id,),
    ).fetchall()
    return _to_dicts(rows)


def get_member_balance(conn: sqlite3.Connection, member_id: str) -> float:
    row = conn.execute(
        "SELECT COALESCE(SUM(debet), 0) - COALESCE(SUM(credit), 0) AS total_due FROM fines WHERE member_id = ?",
        (member_id,),
    ).fetchone()
    return float(row["total_due"] or 0)


def get_total_debited_for_loan(conn: sqlite3.Connection, loan_id: int) -> float:
    row = conn.execute(
        "SELECT COALESCE(SUM(debet), 0) AS total FROM fines WHERE loan_id = ?",
        (loan_id,),
    ).fetchone()
    return float(row["total"] or 0)


def insert_fine(conn: sqlite3.Connection, member_id: str, fines_date, debet: float = 0.0,
                credit: float = 0.0, description: str = "", loan_id: Optional[int] = None,
                item_code: Optional[str] = None) -> Optional[int]:
    """
    Append a ledger line. Returns the new fines_id, or None when a debit for
    the same loan and day already exists.
    """
    cur = conn.execute(
        """
        INSERT INTO fines (member_id, loan_id, item_code, fines_date, debet, credit, description)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (loan_id, fines_date) WHERE debet > 0 DO NOTHING
        """,
        (member_id, loan_id, item_code, _iso(fines_date), debet, credit, description),
    )
    if cur.rowcount == 0:
        return None
    return cur.lastrowid


def add_sample_data(conn: sqlite3.Connection) -> None:
    """Seed reference data and a couple of members/items if the tables are empty."""
    if conn.execute("SELECT COUNT(*) FROM mst_loan_rules").fetchone()[0]:
        return

    with transaction(conn):
        conn.executemany(
            "INSERT INTO mst_member_type (member_type_id, member_type_name) VALUES (?, ?)",
            [(1, 'Student'), (2, 'Staff')],
        )
        conn.executemany(
            "INSERT INTO mst_coll_type (coll_type_id, coll_type_name) VALUES (?, ?)",
            [(1, 'Textbook'), (2, 'Reference'), (3, 'Fiction')],
        )
        conn.executemany(
            "INSERT INTO mst_gmd (gmd_id, gmd_name) VALUES (?, ?)",
            [(1, 'Text'), (2, 'DVD')],
        )
        insert_loan_rule(conn, 1, 1, None, loan_limit=2, loan_periode=14,
                         reborrow_limit=1, fine_each_day=500, grace_periode=1)
        insert_loan_rule(conn, 1, 3, None, loan_limit=3, loan_periode=7,
                         reborrow_limit=2, fine_each_day=1000, grace_periode=0)
        insert_loan_rule(conn, 2, None, None, loan_limit=10, loan_periode=30,
                         reborrow_limit=3, fine_each_day=250, grace_periode=3)
        insert_loan_rule(conn, None, 2, None, loan_limit=1, loan_periode=3,
                         reborrow_limit=0, fine_each_day=2000, grace_periode=0)
        # staff/reference would otherwise tie between the two wildcard rules above
        insert_loan_rule(conn, 2, 2, None, loan_limit=2, loan_periode=7,
                         reborrow_limit=1, fine_each_day=2000, grace_periode=0)
        conn.executemany(
            "INSERT INTO member (member_id, member_name, member_type_id, expire_date) VALUES (?, ?, ?, ?)",
            [('100001', 'Sari Wulandari', 1, '2030-12-31'),
             ('100002', 'Budi Santoso', 2, '2030-12-31')],
        )
        conn.executemany(
            "INSERT INTO item (item_code, title, coll_type_id, gmd_id) VALUES (?, ?, ?, ?)",
            [('B0001', 'Introduction to Algorithms', 1, 1),
             ('B0002', 'Oxford English Dictionary', 2, 1),
             ('B0003', 'Laskar Pelangi', 3, 1)],
        )
