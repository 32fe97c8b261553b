import importlib
import logging
import os
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, current_app, g, jsonify, request, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .errors import register_error_handlers
from .extensions import cors, db, limiter, login_manager, migrate, rq

API_VERSION = "1.0.0"
MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic")

# (url prefix, blueprint module) for everything under /api
API_BLUEPRINTS = (
    ("/api/auth", "auth"),
    ("/api/users", "users"),
    ("/api/interviews", "interviews"),
    ("/api/questions", "questions"),
    ("/api/reports", "reports"),
    ("/api/payments", "payments"),
    ("/api/uploads", "uploads"),
    ("/api/webhooks", "webhooks"),
    ("/api/admin", "admin"),
)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    log_dir = app.config.get("LOG_DIR")
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(os.path.join(log_dir, "app.log"),
                                      maxBytes=5 * 1024 * 1024, backupCount=5)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        app.logger.addHandler(handler)


def create_app(config_object="config.Config"):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config["STARTED_AT"] = time.time()
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)
    login_manager.init_app(app)
    rq.init_app(app)
    limiter.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGIN"]}},
                  supports_credentials=True)

    from .utils.decorators import load_user_from_request, unauthorized
    login_manager.request_loader(load_user_from_request)
    login_manager.unauthorized_handler(unauthorized)

    register_error_handlers(app)

    for prefix, name in API_BLUEPRINTS:
        module = importlib.import_module(f".blueprints.{name}", __name__)
        app.register_blueprint(module.bp, url_prefix=prefix)

    from .seed import register_commands
    register_commands(app)

    @app.before_request
    def _start_timer():
        g.request_started = time.monotonic()

    @app.after_request
    def _finish_request(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if request.path.startswith("/api"):
            elapsed = (time.monotonic() - g.get("request_started", time.monotonic())) * 1000
            app.logger.info("%s %s %s %.1fms", request.method, request.path, response.status_code, elapsed)
        return response

    @app.get("/health")
    @limiter.exempt
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            database = "connected"
        except SQLAlchemyError:
            app.logger.exception("Health check could not reach the database")
            database = "disconnected"
        return jsonify({
            "success": True,
            "message": "Server is healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "uptime": round(time.time() - current_app.config["STARTED_AT"], 1),
            "environment": current_app.config.get("ENV_NAME"),
            "database": database,
        })

    @app.get("/api")
    def api_index():
        return jsonify({
            "success": True,
            "name": "AI Interview Bot API",
            "version": API_VERSION,
            "endpoints": {name: prefix for prefix, name in API_BLUEPRINTS},
        })

    @app.get("/uploads/<path:filename>")
    @limiter.exempt
    def uploaded_file(filename):
        directory = os.path.abspath(current_app.config["LOCAL_STORAGE_DIR"])
        return send_from_directory(directory, filename)

    return app
