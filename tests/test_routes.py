from datetime import date, timedelta

import pytest

from app import create_app
from database import get_db_connection, insert_loan, insert_loan_rule, transaction


@pytest.fixture
def app(tmp_path):
    return create_app({
        'TESTING': True,
        'DATABASE': str(tmp_path / 'routes.db'),
        'SEED_SAMPLE_DATA': True,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def conn(app):
    c = get_db_connection(app.config['DATABASE'])
    yield c
    c.close()


def _lend(client, item_code='B0001', member_id='100001'):
    return client.post('/circulation/checkout',
                       json={'member_id': member_id, 'item_code': item_code, 'role': 'librarian'})


def test_checkout_then_renew(client):
    res = _lend(client)
    assert res.status_code == 201
    loan = res.get_json()['loan']
    assert loan['due_date'] == (date.today() + timedelta(days=14)).isoformat()

    res = client.post('/renew', data={'loan_id': loan['loan_id'], 'member_id': '100001'})
    assert res.status_code == 200
    assert res.get_json()['loan']['renewed'] == 1


def test_second_renewal_is_denied_with_reason(client):
    loan_id = _lend(client).get_json()['loan']['loan_id']
    client.post('/renew', json={'loan_id': loan_id, 'member_id': '100001'})

    res = client.post('/renew', json={'loan_id': loan_id, 'member_id': '100001'})

    assert res.status_code == 409
    body = res.get_json()
    assert body['success'] is False
    assert body['reason'] == 'renewal limit reached'


def test_renew_requires_numeric_loan_id(client):
    res = client.post('/renew', data={'loan_id': 'abc', 'member_id': '100001'})
    assert res.status_code == 400


@pytest.mark.parametrize('body', [[1], 'loan', 42])
def test_renew_rejects_json_body_that_is_not_an_object(client, body):
    res = client.post('/renew', json=body)
    assert res.status_code == 400


def test_member_cannot_checkout(client):
    res = client.post('/circulation/checkout',
                      json={'member_id': '100001', 'item_code': 'B0001', 'role': 'member'})
    assert res.status_code == 403


def test_dues_requires_member(client):
    assert client.get('/dues').status_code == 400


def test_dues_accrues_overdue_loan(client, conn):
    today = date.today()
    with transaction(conn):
        insert_loan(conn, '100001', 'B0001', today - timedelta(days=20), today - timedelta(days=6))

    res = client.get('/dues?member_id=100001')

    assert res.status_code == 200
    body = res.get_json()
    # 6 days late, 1 day grace, 500 per day
    assert body['total_outstanding'] == 2500.0
    assert body['loans'][0]['fine_status'] == 'has_fine'
    assert len(body['fines']) == 1


def test_return_reports_fee(client, conn):
    today = date.today()
    with transaction(conn):
        loan_id = insert_loan(conn, '100001', 'B0003', today - timedelta(days=10), today - timedelta(days=3))

    res = client.post('/circulation/return', json={'loan_id': loan_id, 'role': 'librarian'})

    assert res.status_code == 200
    # fiction: 1000 per day, no grace
    assert res.get_json()['fee_amount'] == 3000.0


def test_rules_for_member(client):
    res = client.get('/rules?member_id=100001')
    assert res.status_code == 200
    assert [r['loan_rules_id'] for r in res.get_json()['rules']] == [1, 2, 4]


def test_ambiguous_rules_surface_as_server_fault(client, conn):
    loan_id = _lend(client).get_json()['loan']['loan_id']
    with transaction(conn):
        insert_loan_rule(conn, 1, 1, None, loan_limit=1, loan_periode=7)

    res = client.post('/renew', json={'loan_id': loan_id, 'member_id': '100001'})

    assert res.status_code == 500
    assert res.get_json()['error'] == 'loan_rule_fault'
