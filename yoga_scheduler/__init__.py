"""
yoga_scheduler/__init__.py
──────────────────────────
Flask application factory for the yoga class booking service.
"""

import logging
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .admin_router import admin_bp
from .auth import AuthClient
from .auth_router import auth_bp
from .booking_router import booking_bp
from .config import load_config
from .errors import SchedulerError
from .notifications import Notifier, SmtpMailer, TwilioSms
from .public_router import public_bp
from .rest_store import RestStore
from .services import EXTENSION_KEY, Services
from .sql_store import SqlStore

log = logging.getLogger(__name__)


def build_store(cfg: dict):
    if cfg["STORAGE_BACKEND"] == "sql":
        store = SqlStore(cfg["DATABASE_URL"])
        store.init_schema()
        return store
    return RestStore(
        cfg["SUPABASE_URL"],
        cfg["SUPABASE_ANON_KEY"],
        timeout=cfg["REQUEST_TIMEOUT"],
        retry_delay=cfg["RETRY_DELAY"],
    )


def build_notifier(cfg: dict) -> Notifier:
    mailer = SmtpMailer(
        cfg["MAIL_SERVER"],
        cfg["MAIL_PORT"],
        cfg["MAIL_USE_TLS"],
        cfg["MAIL_USERNAME"],
        cfg["MAIL_PASSWORD"],
        cfg["MAIL_DEFAULT_SENDER"],
    )
    sms = TwilioSms(cfg["TWILIO_ACCOUNT_SID"], cfg["TWILIO_AUTH_TOKEN"], cfg["TWILIO_FROM_NUMBER"])
    return Notifier(mailer, sms, tz_name=cfg["TZ_NAME"], location=cfg["STUDIO_LOCATION"])


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SchedulerError)
    def handle_scheduler_error(e: SchedulerError):
        if e.status_code >= 500:
            log.error(f"[HTTP] {e.__class__.__name__}: {e.message}")
        else:
            log.info(f"[HTTP] {e.status_code} {e.__class__.__name__}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"ok": False, "error": e.description}), e.code
        log.exception("[HTTP] unhandled error")
        return jsonify({"ok": False, "error": "Internal server error"}), 500


def create_app(config=None, store=None, auth=None, notifier=None, clock=None):
    """Flask application factory. Collaborators may be injected (tests do)."""
    cfg = load_config(**(config or {}))
    app = Flask(__name__)
    app.config.update(cfg)

    # ── Configure logging ──
    logging.basicConfig(
        level=cfg["LOG_LEVEL"],
        format="%(asctime)s [%(levelname)s] %(name)s :: %(message)s"
    )

    services = Services(
        store=store if store is not None else build_store(cfg),
        auth=auth if auth is not None else AuthClient(
            cfg["SUPABASE_URL"], cfg["SUPABASE_ANON_KEY"], timeout=cfg["REQUEST_TIMEOUT"],
        ),
        notifier=notifier if notifier is not None else build_notifier(cfg),
        tz_name=cfg["TZ_NAME"],
    )
    if clock is not None:
        services.clock = clock
    app.extensions[EXTENSION_KEY] = services

    # ── Register blueprints ──
    app.register_blueprint(public_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify({"ok": True, "backend": cfg["STORAGE_BACKEND"]})

    log.info(f"[APP] started backend={cfg['STORAGE_BACKEND']} tz={cfg['TZ_NAME']}")
    return app
