from datetime import datetime, timezone
import logging
import os
import secrets
from flask import Flask, request, jsonify, current_app
from flask_debugtoolbar import DebugToolbarExtension
from flask_httpauth import HTTPBasicAuth
from werkzeug.security import generate_password_hash, check_password_hash
from appointment_sync.booking import booking_service, config as sync_config
from appointment_sync.booking.error_utils import BookingTimeError, CalendarSyncError, ConfigurationError

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,OPTIONS,POST',
    'Access-Control-Allow-Headers': 'Content-Type',
}

SUCCESS_MESSAGE = "Booking confirmed and added to calendar!"


def create_app(config=None, calendar_service_factory=None):
    """
    Builds the booking sync app.

    config: a SyncConfig; loaded and validated once from the environment when omitted. An invalid environment
        does not stop startup, the booking route reports the configuration error on every request instead.
    calendar_service_factory: callable taking the SyncConfig and returning a Calendar v3 client.
    """
    app = Flask(__name__)
    if os.environ.get('FLASK_ENV') != 'production':
        app.config["DEBUG_TB_INTERCEPT_REDIRECTS"] = False

    config_error = None
    if config is None:
        config, config_error = sync_config.try_load_sync_config()
    app.config['SYNC_CONFIG'] = config
    app.config['SYNC_CONFIG_ERROR'] = config_error
    app.config['CALENDAR_SERVICE_FACTORY'] = calendar_service_factory or booking_service.build_calendar_service

    auth = HTTPBasicAuth()
    admin_password = config.admin_password if config else os.getenv('ADMIN_PASSWORD')
    if not admin_password and os.environ.get('FLASK_ENV') != 'production':
        admin_password = 'secret'  # For dev
    users = {"admin": generate_password_hash(admin_password)} if admin_password else {}

    @auth.verify_password
    def verify_password(username, password):
        if username in users and check_password_hash(users.get(username), password):
            return username

    @auth.error_handler
    def auth_error(status):
        return jsonify({"error": "Unauthorized"}), status

    @app.after_request
    def add_cors_headers(response):
        response.headers.update(CORS_HEADERS)
        return response

    @app.route("/api/booking", methods=["POST", "OPTIONS"])
    def sync_booking():
        # Pre-flight gets an empty 200
        if request.method == 'OPTIONS':
            return '', 200
        return _handle_booking_sync()

    # Diagnostics for operators. Reveals the calendar ID so it stays behind basic auth.
    @app.route("/api/status", methods=["GET"])
    @auth.login_required
    def get_status():
        summary = sync_config.describe_config()
        error_details = summary.pop('errorDetails')
        return jsonify({
            "status": "API endpoint working",
            "environment": summary,
            "errorDetails": error_details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    return app


def _handle_booking_sync():
    # Configuration first: calendar ID, then credentials, then credentials format
    config_error = current_app.config['SYNC_CONFIG_ERROR']
    if config_error is not None:
        return jsonify({"error": config_error.message}), 500
    config = current_app.config['SYNC_CONFIG']

    payload = request.get_json(silent=True) or {}
    booking = payload.get('booking') if isinstance(payload, dict) else None
    if not isinstance(booking, dict):
        logger.error("Request body has no booking object")
        return jsonify({"error": "Invalid booking: missing booking data"}), 500

    logger.info(f"Processing booking for: {booking.get('name')}")
    logger.info(f"Selected date: {booking.get('date')} Selected time: {booking.get('time')}")

    try:
        service = booking_service.BookingService(config, current_app.config["CALENDAR_SERVICE_FACTORY"])
        created = service.create_event(booking)
    except ConfigurationError as e:
        return jsonify({"error": e.message}), 500
    except BookingTimeError as e:
        logger.error(f"Booking time rejected: {e.message}")
        return jsonify({"error": e.message}), 500
    except CalendarSyncError as e:
        return jsonify({"error": e.message}), 500

    return jsonify({
        "success": True,
        "eventId": created.get('id'),
        "eventLink": created.get('htmlLink'),
        "message": SUCCESS_MESSAGE,
    }), 200


if __name__ == '__main__':
    app = create_app()
    # production
    if os.environ.get('FLASK_ENV') == 'production':
        app.run(debug=False)
    else:
        app.debug = True
        app.config['SECRET_KEY'] = secrets.token_hex(32)  # 256 bit, toolbar needs one
        toolbar = DebugToolbarExtension(app)
        app.run(debug=True, port=5003)
