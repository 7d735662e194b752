"""
Options Portfolio Tracker API
Imports Robinhood activity exports into sold-option positions.
Provides position listing, premium analytics, and a data purge for the dashboard.
Sessions are issued by the external identity provider; this API only verifies them.
"""

import logging
import os
from datetime import timedelta
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager, jwt_required, get_jwt_identity

from models import db, OptionPosition
from ingest import MAX_UPLOAD_BYTES, PositionStore, UploadValidationError, ingest
from analytics import summarize_positions

logger = logging.getLogger(__name__)


def database_url_from_env():
    """Read DATABASE_URL, normalizing Postgres URLs for the psycopg driver."""
    database_url = os.environ.get('DATABASE_URL', 'sqlite:///options_tracker.db')
    # Handle Render's postgres:// URL (SQLAlchemy requires postgresql+psycopg://)
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql+psycopg://', 1)
    elif database_url.startswith('postgresql://'):
        database_url = database_url.replace('postgresql://', 'postgresql+psycopg://', 1)
    return database_url


def create_app(test_config=None):
    """Create the Flask app, reading configuration from the environment."""
    app = Flask(__name__)

    # Database configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url_from_env()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # JWT configuration (tokens come from the identity provider)
    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=24)

    app.config['MAX_UPLOAD_BYTES'] = int(os.environ.get('MAX_UPLOAD_BYTES', MAX_UPLOAD_BYTES))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    app.config['CORS_ORIGINS'] = os.environ.get('CORS_ORIGINS', '*')

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    jwt = JWTManager(app)
    CORS(app, origins=app.config['CORS_ORIGINS'])

    @jwt.unauthorized_loader
    @jwt.invalid_token_loader
    def unauthorized(reason):
        logger.info("Rejected request: %s", reason)
        return jsonify({'error': 'Unauthorized'}), 401

    @jwt.expired_token_loader
    def expired(jwt_header, jwt_payload):
        return jsonify({'error': 'Unauthorized'}), 401

    register_routes(app)

    # Create tables if they don't exist
    with app.app_context():
        db.create_all()

    return app


def register_routes(app):

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint."""
        return jsonify({'status': 'ok'})

    # =========================================================================
    # UPLOAD ENDPOINTS
    # =========================================================================

    @app.route('/upload/robinhood', methods=['POST'])
    @jwt_required()
    def upload_robinhood():
        """Import sell-to-open option rows from a Robinhood activity CSV."""
        try:
            file = request.files.get('file')
            if file is None or not file.filename:
                return jsonify({'error': 'No file provided'}), 400

            report = ingest(
                file.read(app.config['MAX_UPLOAD_BYTES'] + 1),
                file.filename,
                file.mimetype,
                store=PositionStore(db.session),
                user_id=get_jwt_identity(),
                max_bytes=app.config['MAX_UPLOAD_BYTES'],
            )
            return jsonify(report.to_dict())

        except UploadValidationError as e:
            return jsonify({'error': e.message}), 400
        except Exception:
            db.session.rollback()
            logger.exception("Error processing CSV upload")
            return jsonify({'error': 'Internal server error'}), 500

    # =========================================================================
    # POSITION ENDPOINTS
    # =========================================================================

    @app.route('/positions', methods=['GET'])
    @jwt_required()
    def list_positions():
        """List all option positions for the current user."""
        try:
            user_id = get_jwt_identity()

            positions = OptionPosition.query.filter_by(user_id=user_id)\
                .order_by(OptionPosition.open_date.desc(), OptionPosition.id.desc())\
                .all()

            return jsonify({
                'positions': [p.to_dict(include_transactions=True) for p in positions],
                'count': len(positions)
            })

        except Exception as e:
            logger.exception("Failed to list positions")
            return jsonify({'error': f'Failed to list positions: {str(e)}'}), 500

    @app.route('/positions/summary', methods=['GET'])
    @jwt_required()
    def positions_summary():
        """Premium and collateral summary for the current user."""
        try:
            user_id = get_jwt_identity()
            positions = OptionPosition.query.filter_by(user_id=user_id).all()
            return jsonify(summarize_positions(positions))

        except Exception as e:
            logger.exception("Failed to summarize positions")
            return jsonify({'error': f'Failed to summarize positions: {str(e)}'}), 500

    @app.route('/positions', methods=['DELETE'])
    @jwt_required()
    def purge_positions():
        """Delete every position (and its transactions) owned by the current user."""
        try:
            user_id = get_jwt_identity()

            positions = OptionPosition.query.filter_by(user_id=user_id).all()
            if not positions:
                return jsonify({'message': 'No data to purge', 'deletedPositions': 0})

            for position in positions:
                db.session.delete(position)
            db.session.commit()

            logger.info("Purged %d positions for user %s", len(positions), user_id)
            return jsonify({
                'message': 'All position data deleted successfully',
                'deletedPositions': len(positions)
            })

        except Exception as e:
            db.session.rollback()
            logger.exception("Failed to purge positions")
            return jsonify({'error': f'Failed to purge positions: {str(e)}'}), 500


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=5000, debug=True)
