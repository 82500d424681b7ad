"""
Patron Routes - dues summary, loan renewal and loan rules for members
"""

from flask import Blueprint, jsonify

from routes import get_db, request_value
from services.circulation_policy import attempt_renewal, get_dues_summary, list_member_rules

patron_bp = Blueprint('patron', __name__)


@patron_bp.route('/dues', methods=['GET'])
def dues():
    """
    Fines ledger and per-loan fine status for a member.
    Overdue loans are accrued up to today before the summary is built.
    """
    member_id = request_value('member_id')
    if not member_id:
        return jsonify({'error': 'member_id is required'}), 400
    role = request_value('role', 'member')
    summary = get_dues_summary(get_db(), member_id, role)
    return jsonify(summary.to_dict())


@patron_bp.route('/renew', methods=['POST'])
def renew():
    member_id = request_value('member_id')
    loan_id = request_value('loan_id')
    if not member_id or not loan_id.isdigit():
        return jsonify({'error': 'member_id and a numeric loan_id are required'}), 400
    role = request_value('role', 'member')

    result = attempt_renewal(get_db(), int(loan_id), member_id, role)
    # denials are ordinary outcomes shown to the member
    return jsonify(result.to_dict()), 200 if result.success else 409


@patron_bp.route('/rules', methods=['GET'])
def rules():
    member_id = request_value('member_id')
    if not member_id:
        return jsonify({'error': 'member_id is required'}), 400
    return jsonify({'member_id': member_id, 'rules': list_member_rules(get_db(), member_id)})
