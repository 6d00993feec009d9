# trefa/__init__.py
import logging
import os

from flask import Flask, Response, jsonify, request, send_from_directory, abort
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import load_config, setup_logging
from trefa.db import SessionLocal
from trefa.services.local_store import LocalStore
from trefa.services.vehicles import VehicleService

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("trefa.access")

ONE_YEAR = 365 * 24 * 60 * 60


def create_app(overrides: dict | None = None):
    app = Flask(__name__, static_folder=None)
    load_config(app)
    if overrides:
        app.config.update(overrides)
    setup_logging(app.config["LOG_LEVEL"])

    # one proxy hop in front (Cloud Run / load balancer)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    CORS(app, origins=app.config["FRONTEND_URL"])

    store = LocalStore(app.config["LOCAL_STORE_PATH"])
    app.extensions["vehicle_service"] = VehicleService(
        store,
        session_factory=app.config.get("SESSION_FACTORY") or SessionLocal,
        ttl=app.config["VEHICLE_CACHE_TTL_SEC"],
        per_page=app.config["VEHICLES_PER_PAGE"],
    )

    # ---------- Security headers ----------
    @app.after_request
    def add_security_headers(resp: Response):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        return resp

    # ---------- Access log (combined format) ----------
    @app.after_request
    def log_request(resp: Response):
        if app.config.get("ACCESS_LOG"):
            access_logger.info(
                '%s - - "%s %s %s" %s %s "%s" "%s"',
                request.remote_addr or "-",
                request.method,
                request.full_path.rstrip("?"),
                request.environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
                resp.status_code,
                resp.calculate_content_length() or "-",
                request.referrer or "-",
                request.user_agent.string or "-",
            )
        return resp

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Server error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal Server Error"}), 500

    # ----- Blueprints -----
    from trefa.routes.api import bp as api_bp
    app.register_blueprint(api_bp, url_prefix="/api")

    # ----- Health -----
    @app.get("/healthz")
    def healthz():
        return "ok"

    # ===== React build + SPA fallback for client-side routes =====
    @app.get("/")
    @app.get("/<path:path>")
    def spa(path: str = ""):
        root = app.config["STATIC_DIR"]
        if path and os.path.isfile(os.path.join(root, path)):
            return send_from_directory(root, path, max_age=ONE_YEAR)
        if not os.path.isfile(os.path.join(root, "index.html")):
            abort(404)
        return send_from_directory(root, "index.html", max_age=0)

    return app
