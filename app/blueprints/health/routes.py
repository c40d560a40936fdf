# app/blueprints/health/routes.py

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.utils.logging import get_logger

health_bp = Blueprint("health", __name__)

logger = get_logger("health")


@health_bp.route("/")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Health check: base de datos no disponible: {e}")
        return jsonify({"status": "unhealthy", "database": "unavailable"}), 503
    return jsonify({"status": "healthy", "database": "ok"})
