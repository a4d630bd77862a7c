from flask import Blueprint, current_app, jsonify
from werkzeug.exceptions import HTTPException

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'status': 'GPU Race Server Running'})


@main.route('/health')
def health():
    coordinator = current_app.extensions['race_coordinator']
    return jsonify({'status': 'healthy', 'rooms': len(coordinator.rooms)})


@main.app_errorhandler(Exception)
def handle_unexpected_error(exc):
    # Let 404/405 and friends render as usual
    if isinstance(exc, HTTPException):
        return exc
    current_app.logger.error(f"[http-error] {exc}", exc_info=exc)
    return jsonify({'error': 'Internal Server Error'}), 500
