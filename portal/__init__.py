# portal/__init__.py

# =====================================================================================
# 1. Environment variables (loaded first)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. Imports
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
import firebase_admin
from firebase_admin import credentials, firestore

# - config
from portal.core.config import config_by_name

# - API blueprints
from portal.api.auth.routes import auth_bp
from portal.api.users.routes import users_bp
from portal.api.posts.routes import posts_bp
from portal.api.comments.routes import comments_bp
from portal.api.events.routes import events_bp
from portal.api.notifications.routes import notifications_bp
from portal.api.admin.routes import admin_bp

# - services
from portal.api.auth import services as auth_service_module
from portal.api.users.services import UserService
from portal.api.posts.services import PostService
from portal.api.comments.services import CommentService
from portal.api.events.services import EventService
from portal.api.notifications.services import InboxService
from portal.services.notification_service import NotificationService
from portal.services.reaction_service import ReactionService
from portal.services.deletion_log_service import DeletionLogService
from portal.services.realtime_service import ForumRealtimeView


def _init_firebase(app: Flask):
    if firebase_admin._apps:
        return
    cred_path = app.config.get('FIREBASE_CREDENTIALS_PATH')
    options = {}
    if app.config.get('FIREBASE_PROJECT_ID'):
        options['projectId'] = app.config['FIREBASE_PROJECT_ID']

    if cred_path:
        if not os.path.exists(cred_path):
            raise FileNotFoundError(f"Firebase credentials file not found: {cred_path}")
        firebase_admin.initialize_app(credentials.Certificate(cred_path), options)
    else:
        # Application default credentials (e.g. on Cloud Run).
        firebase_admin.initialize_app(options=options or None)


def create_app(config_name=None, db=None):
    """
    Flask application factory.
    `db` replaces the Firestore client; the test suite passes an in-memory one.
    """
    # =====================================================================================
    # 3. App and configuration
    # =====================================================================================
    config_name = config_name or os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. Extensions and external services
    # =====================================================================================
    jwt = JWTManager(app)

    if db is None:
        _init_firebase(app)
        db = firestore.client()

    # =====================================================================================
    # 5. Service instances in 'app.services' (dependency injection)
    # =====================================================================================
    app.services = {}

    # 5-1. Shared services other services depend on
    app.services['users'] = UserService(db=db)
    app.services['notifications'] = NotificationService(
        db=db,
        batch_size=app.config['NOTIFICATION_BATCH_SIZE'],
        batch_delay=app.config['NOTIFICATION_BATCH_DELAY_SECONDS']
    )
    app.services['deletion_logs'] = DeletionLogService(db=db)
    app.services['reactions'] = ReactionService(notification_service=app.services['notifications'], db=db)

    realtime_view = None
    if app.config.get('FORUM_REALTIME_ENABLED'):
        try:
            realtime_view = ForumRealtimeView(db=db)
            realtime_view.start()
        except Exception as e:
            logging.warning(f"Forum realtime view unavailable, falling back to direct queries: {e}")
            realtime_view = None
    app.services['forum_realtime'] = realtime_view

    # 5-2. Domain services
    app.services['posts'] = PostService(
        notification_service=app.services['notifications'],
        deletion_log_service=app.services['deletion_logs'],
        reaction_service=app.services['reactions'],
        realtime_view=realtime_view,
        db=db
    )
    app.services['comments'] = CommentService(
        notification_service=app.services['notifications'],
        deletion_log_service=app.services['deletion_logs'],
        reaction_service=app.services['reactions'],
        realtime_view=realtime_view,
        db=db
    )
    app.services['events'] = EventService(
        notification_service=app.services['notifications'],
        deletion_log_service=app.services['deletion_logs'],
        db=db,
        timezone_name=app.config['PORTAL_TIMEZONE'],
        duplicate_window_seconds=app.config['EVENT_DUPLICATE_WINDOW_SECONDS']
    )
    app.services['inbox'] = InboxService(db=db, retention_hours=app.config['NOTIFICATION_READ_RETENTION_HOURS'])

    # - auth service (needs the app)
    auth_service_module.auth_service.init_app(app, db=db)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return auth_service_module.auth_service.is_token_revoked(jwt_payload)

    # =====================================================================================
    # 6. Blueprints
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(posts_bp, url_prefix='/api/forum')
    app.register_blueprint(comments_bp, url_prefix='/api/forum')
    app.register_blueprint(events_bp, url_prefix='/api/events')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    # =====================================================================================
    # 7. Global error handlers
    # =====================================================================================
    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        # 404/405 and other HTTP errors keep their own status.
        if isinstance(err, HTTPException):
            return err
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "An unexpected server error occurred."}
        return jsonify(response), 500

    # =====================================================================================
    # 8. Logging
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app
