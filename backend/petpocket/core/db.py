import logging
import time
from typing import Any, Dict, Optional

from flask import g, has_request_context
from sqlalchemy import event
from sqlalchemy.engine import Engine

from petpocket.core.config import get_slow_query_threshold_ms

logger = logging.getLogger("sql.alerts")

_SENSITIVE_KEYS = ("password", "token", "secret", "email", "encrypted")


def _safe_truncate(value: Any, limit: int = 500) -> str:
    text = str(value)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def mask_params(params: Any) -> Any:
    """Redact parameters whose key suggests secret or personal data."""
    if isinstance(params, dict):
        masked: Dict[str, Any] = {}
        for key, value in params.items():
            lowered = str(key).lower()
            if any(marker in lowered for marker in _SENSITIVE_KEYS):
                masked[key] = "***"
            else:
                masked[key] = mask_params(value)
        return masked
    if isinstance(params, (list, tuple)):
        return [mask_params(item) for item in params]
    if isinstance(params, bytes):
        return "<binary>"
    return _safe_truncate(params, 200)


def _gather_request_context(db_info: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    context: Dict[str, Any] = {}
    if has_request_context():
        for key in ("request_id", "route", "user_id"):
            value = getattr(g, key, None)
            if value is not None:
                context[key] = value
    for key, value in (db_info or {}).items():
        if value:
            context[key] = value
    return context


def register_query_timing(
    engine: Engine, db_info: Optional[Dict[str, Any]] = None
) -> None:
    """Register slow query alert listeners for the provided engine."""

    if getattr(engine, "_slow_query_alerts_registered", False):
        return

    resolved_db_info = dict(db_info or {})
    if not resolved_db_info:
        resolved_db_info = {
            "db_host": engine.url.host,
            "db_name": engine.url.database,
        }

    @event.listens_for(engine, "before_cursor_execute")
    def _before_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        context._slow_query_start_time = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def _after_cursor_execute(
        conn, cursor, statement, parameters, context, executemany
    ):
        start = getattr(context, "_slow_query_start_time", None)
        if start is None:
            return
        duration_ms = (time.perf_counter() - start) * 1000.0
        if duration_ms < get_slow_query_threshold_ms():
            return
        compiled_params = getattr(context, "compiled_parameters", None)
        raw_params = parameters
        if compiled_params:
            raw_params = compiled_params if executemany else compiled_params[0]
        logger.warning(
            "Slow query detected",
            extra={
                "context": {
                    "alert_type": "slow_query",
                    "duration_ms": round(duration_ms, 2),
                    "statement": _safe_truncate(statement or ""),
                    "params": mask_params(raw_params),
                    **_gather_request_context(resolved_db_info),
                }
            },
        )

    setattr(engine, "_slow_query_alerts_registered", True)


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on foreign key enforcement for every new SQLite connection.

    SQLite ignores ``ON DELETE`` actions unless the pragma is set per
    connection, so ``SET NULL`` references would otherwise dangle.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()
