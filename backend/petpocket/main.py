import atexit
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

from petpocket.core.config import (
    get_limiter_storage_uri,
    is_production,
    is_rate_limit_enabled,
    is_testing,
    log_store_config,
)
from petpocket.core.exceptions import AppError
from petpocket.db.mongo import DocumentStore
from petpocket.db.session import create_tables, dispose_engine

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMIT_EXCEEDED",
}


def _error_envelope(message: str, code: str, status_code: int, details=None):
    payload = {"success": False, "error": message, "code": code}
    if details is not None:
        payload["details"] = details
    return jsonify(payload), status_code


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        log = logger.error if error.status_code >= 500 else logger.info
        log(
            error.message,
            extra={"context": {"code": error.code, "status_code": error.status_code}},
        )
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        status_code = error.code or 500
        code = HTTP_ERROR_CODES.get(status_code, "HTTP_ERROR")
        if status_code == 429:
            message = "Too many requests"
        elif status_code == 404:
            message = "Resource not found"
        elif status_code == 405:
            message = "Method not allowed"
        else:
            message = error.description or error.name
        return _error_envelope(message, code, status_code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.error(
            "Unhandled error",
            extra={"context": {"error_type": type(error).__name__}},
            exc_info=True,
        )
        return _error_envelope("Internal server error", "INTERNAL_SERVER_ERROR", 500)


def _init_sentry(env: str) -> None:
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        logger.info(
            "Sentry not initialized (SENTRY_DSN not set)",
            extra={"context": {"environment": env}},
        )
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=env,
        release=os.getenv("GIT_SHA", "unknown"),
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info(
        "Sentry initialized",
        extra={"context": {"environment": env, "traces_sample_rate": 0.1}},
    )


def _init_limiter(app: Flask) -> None:
    from petpocket.core.limiter_config import limiter

    app.config["RATELIMIT_STORAGE_URI"] = get_limiter_storage_uri()
    app.config["RATELIMIT_ENABLED"] = is_rate_limit_enabled()
    limiter.init_app(app)

    if not is_rate_limit_enabled():
        limiter.enabled = False
        logger.info(
            "Rate limiting disabled", extra={"context": {"testing": is_testing()}}
        )


def _init_document_store(app: Flask, document_store: Optional[DocumentStore]) -> DocumentStore:
    store = document_store or DocumentStore.from_settings()
    try:
        store.ensure_indexes()
    except PyMongoError as e:
        logger.error(
            "Could not create document store indexes",
            extra={"context": {"error": str(e)}},
        )
    app.extensions["document_store"] = store
    return store


def create_app(document_store: Optional[DocumentStore] = None) -> Flask:
    """Build the API application.

    ``document_store`` lets callers (tests, scripts) supply their own handle;
    otherwise one is created from ``MONGODB_URI``/``MONGODB_DB``.
    """
    if not os.getenv("DATABASE_URL"):
        load_dotenv()

    env = os.getenv("FLASK_ENV", "development")
    production = is_production()

    app = Flask(__name__)
    app.config["TESTING"] = is_testing()
    app.json.sort_keys = False

    from petpocket.core.logging_config import setup_logging

    setup_logging(
        app=app,
        log_level=logging.INFO if production else logging.DEBUG,
        log_to_file=os.getenv("LOG_TO_FILE", "0") == "1",
        use_json_format=production,
    )

    _init_sentry(env)
    _init_limiter(app)

    # Fail fast on weak secrets before serving anything
    if production:
        from petpocket.core.config import get_encryption_key
        from petpocket.core.security import get_jwt_secret_key

        get_jwt_secret_key()
        get_encryption_key()

    store = _init_document_store(app, document_store)

    create_tables()
    log_store_config()

    from petpocket.controllers import ALL_BLUEPRINTS

    for blueprint in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint)

    register_error_handlers(app)

    if document_store is None:
        atexit.register(close_stores, store)

    logger.info(
        "Application created",
        extra={
            "context": {
                "environment": env,
                "blueprints": [bp.name for bp in ALL_BLUEPRINTS],
            }
        },
    )
    return app


def close_stores(store: DocumentStore) -> None:
    """Release the document store client and the relational pool."""
    store.close()
    dispose_engine()
