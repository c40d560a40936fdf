# app/__init__.py

from flask import Flask, jsonify
from .config import Config
from .errors import WorkflowError
from .extensions import db, migrate
from .utils.logging import configure_logging, get_logger

logger = get_logger("app")


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Inicializar extensiones
    db.init_app(app)
    migrate.init_app(app, db)

    # Modelos registrados para Flask-Migrate
    from . import models  # noqa: F401

    # Registrar blueprints
    from .blueprints.api.routes import api_bp
    from .blueprints.health.routes import health_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(health_bp, url_prefix="/health")

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(e):
        if e.http_status >= 500:
            logger.error(f"{e.code}: {e.message}")
        else:
            logger.info(f"{e.code}: {e.message} ids={e.offending_ids}")
        return jsonify(e.to_dict()), e.http_status

    return app
