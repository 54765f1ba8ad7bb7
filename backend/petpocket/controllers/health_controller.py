"""
Health endpoints for container health checks and monitoring. No authentication.
"""

import logging

from flask import Blueprint, jsonify
from sqlalchemy.pool import QueuePool

from petpocket.core.limiter_config import limiter
from petpocket.db.mongo import get_document_store
from petpocket.db.session import check_database_connection, get_engine

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/health")


@health_bp.route("", methods=["GET"])
@limiter.exempt
def health_check():
    """Report connectivity of both stores; 503 when either is down."""
    db_ok = check_database_connection()
    documents_ok = get_document_store().ping()
    healthy = db_ok and documents_ok

    if not healthy:
        logger.warning(
            "Health check failed",
            extra={"context": {"database": db_ok, "document_store": documents_ok}},
        )

    return jsonify(
        {
            "status": "healthy" if healthy else "unhealthy",
            "database": "connected" if db_ok else "disconnected",
            "document_store": "connected" if documents_ok else "disconnected",
        }
    ), (200 if healthy else 503)


@health_bp.route("/pool", methods=["GET"])
@limiter.exempt
def pool_metrics():
    """Relational connection pool statistics."""
    pool = get_engine().pool
    stats = {"status": "healthy", "pool_status": pool.status()}

    if isinstance(pool, QueuePool):
        size = pool.size()
        checked_out = pool.checkedout()
        stats.update(
            {
                "pool_size": size,
                "connections_in_pool": pool.checkedin(),
                "overflow": pool.overflow(),
                "checked_out": checked_out,
                "utilization_percent": round(checked_out / size * 100, 2) if size else 0.0,
            }
        )

    return jsonify(stats), 200
