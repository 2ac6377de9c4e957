import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from sqlalchemy.sql import text
from werkzeug.exceptions import HTTPException

from config import Config
from errors import LibraryError
from extensions import db, scheduler
from ledger import BorrowLedger
from routes import register_blueprints

logger = logging.getLogger(__name__)


def run_overdue_sweep(app):
    with app.app_context():
        BorrowLedger.from_config(app.config).sweep_overdue()


def start_scheduler(app):
    hours = app.config.get('OVERDUE_SWEEP_HOURS', 0)
    if hours <= 0 or scheduler.running:
        return
    scheduler.add_job(run_overdue_sweep, 'interval', hours=hours, args=[app], id='overdue_sweep',
                      replace_existing=True)
    scheduler.start()
    logger.debug(f"Overdue sweep scheduled every {hours}h")


def register_error_handlers(app):
    @app.errorhandler(LibraryError)
    def handle_library_error(error):
        logger.debug(f"{request.method} {request.path} failed: {error.status_code} {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'fail', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_error(error):
        logger.exception(f"Unhandled error: {str(error)}")
        db.session.rollback()
        return jsonify({'status': 'error', 'message': 'An unexpected error occurred'}), 500


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(level=app.config['LOG_LEVEL'], format='%(asctime)s - %(levelname)s - %(message)s')
    CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

    try:
        db.init_app(app)
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

    @app.before_request
    def log_request():
        logger.debug(f"Incoming request: {request.method} {request.path}")

    @app.route('/')
    def home():
        return jsonify({'status': 'success', 'message': 'Library Management System API is running'})

    @app.route('/api/health', methods=['GET'])
    def health():
        db.session.execute(text('SELECT 1'))
        return jsonify({'status': 'success', 'database': 'ok'})

    register_blueprints(app)
    register_error_handlers(app)

    with app.app_context():
        db.create_all()
        logger.debug(f"Database connected: {app.config['SQLALCHEMY_DATABASE_URI']}")

    start_scheduler(app)
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config.get('DEBUG', False))
