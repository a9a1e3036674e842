import os
import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config
from exceptions import HotelError
from extensions import db, login_manager, migrate, mail, cors
from models import to_local_time

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Set up logging
    logging.basicConfig(level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # needed for url_for to generate with https

    # Initialize the extensions
    db.init_app(app)
    login_manager.init_app(app)
    login_manager.login_view = 'site.login'
    migrate.init_app(app, db)
    mail.init_app(app)

    # The API is called cross-origin by the browser front end
    cors.init_app(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
                  supports_credentials=True)

    from auth_service import init_identity_service
    init_identity_service(app)

    # Import routes after models to avoid circular imports
    from routes import site_bp
    from api_routes import api_bp
    app.register_blueprint(site_bp)
    app.register_blueprint(api_bp)

    from admin_commands import register_commands
    register_commands(app)

    register_error_handlers(app)

    @app.template_filter('to_local_time')
    def to_local_time_filter(dt):
        return to_local_time(dt, app.config['HOTEL_TIMEZONE'])

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            db.create_all()
            if app.config.get('SEED_ROOMS'):
                from init_data import seed_rooms
                seed_rooms()

    return app


def register_error_handlers(app):
    @app.errorhandler(HotelError)
    def handle_hotel_error(e):
        if e.status_code >= 500:
            logger.error(f"{e.tag}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'error': 'http', 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        logger.exception(f"Unhandled error: {e}")
        return jsonify({'success': False, 'error': 'internal', 'message': HotelError.default_message}), 500


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=False)
