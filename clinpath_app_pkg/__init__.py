# clinpath_app_pkg/__init__.py

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, NotFound

# Load environment variables from .env file.
load_dotenv()

from .config import get_config

# Initialize extensions at the top level, but without an app context.
# This is a standard pattern to avoid circular imports.
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name='development'):
    """
    Application factory function.
    """
    app = Flask(__name__)

    config_class = get_config(config_name)
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    # Initialize extensions with the app context
    db.init_app(app)
    migrate.init_app(app, db)

    # --- Import and register Blueprints INSIDE create_app ---
    # This also prevents circular imports.
    from .encounters.routes import encounters_bp
    app.register_blueprint(encounters_bp, url_prefix='/api')

    from .compliance.routes import compliance_bp
    app.register_blueprint(compliance_bp, url_prefix='/api')

    from .summaries.routes import summaries_bp
    app.register_blueprint(summaries_bp, url_prefix='/api')

    from .dashboard.routes import dashboard_bp
    app.register_blueprint(dashboard_bp, url_prefix='/api')

    # Register audit listeners
    from .audit.listeners import register_audit_listeners
    register_audit_listeners(app)

    # Outbound messages are handed to whichever sender the deployment registers.
    from .notifications.utils import log_only_sender
    app.extensions.setdefault('notification_sender', log_only_sender)

    @app.route('/health')
    def health_check():
        return "Clinical Pathway Monitor is healthy!", 200

    # Centralized error handling
    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        app.logger.error(f"Database Error: {e}")
        db.session.rollback()
        return jsonify({"error": "A database error occurred."}), 500

    @app.errorhandler(NotFound)
    def handle_not_found_error(e):
        app.logger.warning(f"Not Found Error: {e}")
        return jsonify({"error": "The requested resource was not found."}), 404

    @app.errorhandler(Exception)
    def handle_generic_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        app.logger.error(f"An unexpected error occurred: {e}", exc_info=True)
        return jsonify({"error": "An unexpected server error occurred."}), 500

    return app
