"""
Circulation Routes - desk checkout and return, staff roles only
"""

from flask import Blueprint, jsonify

from routes import get_db, request_value
from services.circulation_policy import checkout_item, return_item

circulation_bp = Blueprint('circulation', __name__, url_prefix='/circulation')


@circulation_bp.route('/checkout', methods=['POST'])
def checkout():
    member_id = request_value('member_id')
    item_code = request_value('item_code')
    if not member_id or not item_code:
        return jsonify({'error': 'member_id and item_code are required'}), 400

    result = checkout_item(get_db(), member_id, item_code, request_value('role'))
    return jsonify(result.to_dict()), 201 if result.success else 409


@circulation_bp.route('/return', methods=['POST'])
def return_loan():
    loan_id = request_value('loan_id')
    if not loan_id.isdigit():
        return jsonify({'error': 'a numeric loan_id is required'}), 400

    result = return_item(get_db(), int(loan_id), request_value('role'))
    return jsonify(result.to_dict()), 200 if result.success else 409
