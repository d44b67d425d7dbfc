"""
Configuration module for KTV Request Hub.
Handles app configuration, session storage, and cache initialization.
"""

import logging
import os
from urllib.parse import urlparse

import redis
from dotenv import load_dotenv
from flask_caching import Cache
from flask_session import Session

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

SESSION_DIR = "/tmp/ktv_session"


def get_redis_url():
    """Get Redis URL, disabling certificate checks for rediss:// on hosted Redis"""
    redis_url = os.getenv("REDIS_URL")
    if redis_url and redis_url.startswith("rediss://") and "ssl_cert_reqs" not in redis_url:
        return redis_url + "?ssl_cert_reqs=none"
    return redis_url or "redis://localhost:6379/0"


def create_redis_client():
    """Connect to Redis with short timeouts. Returns None when it is not reachable."""
    parsed = urlparse(get_redis_url())
    try:
        client = redis.Redis(
            host=parsed.hostname or "localhost",
            port=parsed.port or 6379,
            password=parsed.password,
            ssl=parsed.scheme == "rediss",
            ssl_cert_reqs=None,
            socket_connect_timeout=3,
            socket_timeout=3,
            retry_on_timeout=False,
        )
        client.ping()
        logger.info(f"Redis client connected to {parsed.hostname}:{parsed.port or 6379}")
        return client
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}")
        return None


def redis_wanted():
    return bool(os.getenv("REDIS_URL")) or os.getenv("FLASK_ENV") == "production"


def configure_session_storage(app, redis_client=None):
    """Configure session storage: Redis in production when reachable, filesystem otherwise"""
    app.config.setdefault("SESSION_PERMANENT", True)
    app.config.setdefault("SESSION_USE_SIGNER", True)
    app.config.setdefault("SESSION_COOKIE_HTTPONLY", True)
    app.config.setdefault("SESSION_COOKIE_SAMESITE", "Lax")

    if "SESSION_TYPE" in app.config:
        # Set explicitly, e.g. by tests
        pass
    elif redis_client is not None and os.getenv("FLASK_ENV") == "production":
        app.config["SESSION_TYPE"] = "redis"
        app.config["SESSION_REDIS"] = redis_client
        app.config["SESSION_KEY_PREFIX"] = "ktv:"
        app.config["SESSION_COOKIE_SECURE"] = True
    else:
        app.config["SESSION_TYPE"] = "filesystem"

    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = app.config.setdefault("SESSION_FILE_DIR", SESSION_DIR)
        os.makedirs(session_dir, exist_ok=True)

    logger.info(f"Using {app.config['SESSION_TYPE']} for session storage")


def configure_cache(app, redis_client=None):
    """Configure Flask-Caching: Redis when reachable, in-process SimpleCache otherwise"""
    app.config.setdefault("CACHE_DEFAULT_TIMEOUT", 300)
    if "CACHE_TYPE" in app.config:
        pass
    elif redis_client is not None:
        app.config["CACHE_TYPE"] = "RedisCache"
        app.config["CACHE_REDIS_URL"] = get_redis_url()
        app.config["CACHE_KEY_PREFIX"] = "ktv:"
    else:
        app.config["CACHE_TYPE"] = "SimpleCache"

    logger.info(f"Using {app.config['CACHE_TYPE']} for caching")
    return Cache(app)


def init_app(app):
    """Initialize Flask app with configuration and return cache instance"""

    # Basic Flask configuration
    app.config.setdefault("SECRET_KEY", os.getenv("SECRET_KEY", "dev-secret-change-in-production"))
    app.config.setdefault("DATABASE_URL", os.getenv("DATABASE_URL"))
    app.config.setdefault("KTV_ADMIN_EMAIL", os.getenv("KTV_ADMIN_EMAIL", "admin@ktv.local"))
    app.config.setdefault("KTV_ADMIN_PASSWORD", os.getenv("KTV_ADMIN_PASSWORD", "admin123"))
    app.config.setdefault("KTV_IMPORT_BATCH_SIZE", int(os.getenv("KTV_IMPORT_BATCH_SIZE", "100")))
    app.config.setdefault("KTV_PAGE_SIZE", int(os.getenv("KTV_PAGE_SIZE", "10")))

    # Only probe Redis when it is configured or when running in production
    needs_redis = "SESSION_TYPE" not in app.config or "CACHE_TYPE" not in app.config
    redis_client = create_redis_client() if needs_redis and redis_wanted() else None

    configure_session_storage(app, redis_client)
    Session(app)

    cache = configure_cache(app, redis_client)
    logger.info("Configuration and caching initialized successfully")
    return cache
