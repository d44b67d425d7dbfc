"""
KTV Request Hub application factory.
Wires configuration, storage, change notifications, HTTP blueprints and Socket.IO together.
"""

import logging
import os
from dotenv import load_dotenv
from flask import Flask, jsonify

from ktv.auth.user_auth import user_auth_bp
from ktv.core.errors import KtvError
from ktv.core.lifecycle import RequestLifecycleController
from ktv.models import configure_engine, init_db
from ktv.routes.admin import admin_bp
from ktv.routes.feedback import feedback_bp
from ktv.routes.profile import profile_bp
from ktv.routes.queue import queue_bp
from ktv.routes.rankings import rankings_bp
from ktv.routes.songs import songs_bp
from ktv.stores import CatalogStore, ChangeChannel, FeedbackStore, RequestStore, UserStore
from ktv.utils.cache import register_cache_invalidation
from ktv.utils.config import init_app
from ktv.websockets.handlers import init_socketio

load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging():
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(test_config=None):
    """Build the Flask app. `test_config` overrides configuration before anything is initialised."""
    configure_logging()

    app = Flask(__name__)
    if test_config:
        app.config.update(test_config)

    # Configuration, sessions and caching
    app.cache = init_app(app)

    # Database
    configure_engine(app.config["DATABASE_URL"])
    init_db()

    # Stores share one change channel; every committed write notifies its table
    app.change_channel = ChangeChannel()
    app.catalog_store = CatalogStore(app.change_channel)
    app.request_store = RequestStore(app.change_channel)
    app.user_store = UserStore(app.change_channel)
    app.feedback_store = FeedbackStore(app.change_channel)
    app.lifecycle = RequestLifecycleController(app.request_store, app.user_store)
    register_cache_invalidation(app, app.change_channel)

    app.user_store.seed_admin(app.config["KTV_ADMIN_EMAIL"], app.config["KTV_ADMIN_PASSWORD"])

    # Register blueprints
    app.register_blueprint(user_auth_bp, url_prefix='/auth')
    app.register_blueprint(songs_bp, url_prefix='/songs')
    app.register_blueprint(queue_bp, url_prefix='/queue')
    app.register_blueprint(rankings_bp, url_prefix='/rankings')
    app.register_blueprint(profile_bp, url_prefix='/profile')
    app.register_blueprint(feedback_bp, url_prefix='/feedback')
    app.register_blueprint(admin_bp, url_prefix='/admin')

    @app.errorhandler(KtvError)
    def handle_ktv_error(error):
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.route("/health")
    def health():
        """Health check endpoint"""
        return jsonify({"status": "healthy", "service": "ktv-request-hub"}), 200

    app.socketio = init_socketio(app)
    logger.info("KTV Request Hub initialized")
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("PORT", 8000))
    app.socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)
