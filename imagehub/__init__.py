import os
from flask import Flask
from dotenv import load_dotenv

load_dotenv()


def default_config_name():
    """``FLASK_ENV`` if set; otherwise production when a ``PORT`` is assigned."""
    config_name = os.environ.get("FLASK_ENV")
    if config_name:
        return config_name
    # A hosting platform assigns PORT; never fall back to debug mode there
    return "production" if os.environ.get("PORT") else "development"


def create_app(config_name=None):
    flask_app = Flask(__name__)

    if config_name is None:
        config_name = default_config_name()

    from imagehub.config import config_map

    config_cls = config_map.get(config_name, config_map["development"])
    flask_app.config.from_object(config_cls)

    if hasattr(config_cls, "init_app"):
        config_cls.init_app(flask_app)

    # Initialize extensions
    from imagehub.extensions import db, migrate, init_redis

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    init_redis(flask_app)

    # Import models so Alembic sees them
    from imagehub.models import (  # noqa: F401
        AuditLog,
        Product,
        ProductImage,
        Settings,
        UploadBatch,
    )

    # Register blueprints
    from imagehub.blueprints.api import api_bp
    from imagehub.blueprints.public import public_bp

    flask_app.register_blueprint(public_bp)
    flask_app.register_blueprint(api_bp, url_prefix="/api")

    # Domain errors become JSON responses
    from imagehub.errors import ImageHubError

    @flask_app.errorhandler(ImageHubError)
    def handle_domain_error(e):
        return {"error": e.message}, e.status_code

    # Register CLI commands
    from imagehub.cli import register_cli

    register_cli(flask_app)

    # Health check
    @flask_app.route("/health")
    def health():
        from imagehub.extensions import redis_client

        checks = {"status": "ok"}
        try:
            db.session.execute(db.text("SELECT 1"))
            checks["db"] = "ok"
        except Exception:
            flask_app.logger.exception("Health check DB probe failed")
            checks["db"] = "error"
            checks["status"] = "degraded"
        try:
            if redis_client:
                redis_client.ping()
                checks["redis"] = "ok"
            else:
                checks["redis"] = "not configured"
        except Exception:
            flask_app.logger.exception("Health check Redis probe failed")
            checks["redis"] = "error"
            checks["status"] = "degraded"
        status_code = 200 if checks["status"] == "ok" else 503
        return checks, status_code

    return flask_app
