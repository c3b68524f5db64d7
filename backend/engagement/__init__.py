import logging
import os

from flask import Flask, jsonify
from sqlalchemy import text

from engagement.config import Config
from engagement.extensions import db, migrate, cors
from engagement.cli import engagement_cli
from engagement.segments.segment_engagement import engagement_bp
from engagement.segments.segment_reconciliation_admin import recon_bp


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    env = app.config["ENV"]

    # Production safety checks
    if env in ("prod", "production") and not app.config.get("DATABASE_URL_FROM_ENV") and not test_config:
        raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")

    # Ensure instance dir exists for SQLite paths
    os.makedirs(app.config["INSTANCE_DIR"], exist_ok=True)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL") or "INFO"), logging.INFO))

    # CORS configuration
    cors_origins = app.config.get("CORS_ORIGINS") or []
    if env in ("prod", "production"):
        origins = list(cors_origins)
    else:
        origins = list(cors_origins) or ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(engagement_bp)
    app.register_blueprint(recon_bp)
    app.cli.add_command(engagement_cli)

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception:
            db_state = "fail"
        return jsonify({
            "ok": True,
            "service": "engagement-engine",
            "env": env,
            "db": db_state,
            "store_enabled": bool(app.config.get("ENGAGEMENT_STORE_ENABLED")),
        })

    return app
