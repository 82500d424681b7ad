"""
Circulation portal - Flask application factory
"""

import logging
import sqlite3

from flask import Flask, jsonify

from config import Config
from database import add_sample_data, get_db_connection, init_database
from routes import close_db
from routes.circulation_routes import circulation_bp
from routes.patron_routes import patron_bp
from services.loan_rules import LoanPolicyError

logger = logging.getLogger(__name__)


def create_app(test_config=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config is not None:
        app.config.from_mapping(test_config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    conn = get_db_connection(app.config['DATABASE'], app.config['DATABASE_TIMEOUT'])
    try:
        init_database(conn)
        if app.config['SEED_SAMPLE_DATA']:
            add_sample_data(conn)
    finally:
        conn.close()

    app.register_blueprint(patron_bp)
    app.register_blueprint(circulation_bp)
    app.teardown_appcontext(close_db)

    @app.errorhandler(LoanPolicyError)
    def loan_rule_fault(err):
        logger.error("loan rule fault: %s", err)
        return jsonify({'error': 'loan_rule_fault', 'detail': str(err)}), 500

    @app.errorhandler(PermissionError)
    def forbidden(err):
        return jsonify({'error': 'forbidden', 'detail': str(err)}), 403

    @app.errorhandler(sqlite3.OperationalError)
    def storage_busy(err):
        logger.warning("storage unavailable: %s", err)
        return jsonify({'error': 'storage_unavailable', 'detail': str(err)}), 503

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
