# yoga_scheduler/config.py
import os, logging

# ── Helpers ───────────────────────────────────────────────────────────────────
def _normalize_url(url: str) -> str:
    """
    Local Supabase listens on 127.0.0.1; 'localhost' can resolve to ::1
    and miss the gateway, so rewrite it.
    """
    if not url:
        return ""
    return url.rstrip("/").replace("localhost", "127.0.0.1")

def _flag(env_val: str | None, default: str = "0") -> bool:
    return (env_val or default) in ("1", "true", "True", "yes")

# ── Hosted backend (PostgREST + GoTrue) ──────────────────────────────────────
SUPABASE_URL         = _normalize_url(os.environ.get("SUPABASE_URL", "http://127.0.0.1:54321"))
SUPABASE_ANON_KEY    = os.environ.get("SUPABASE_ANON_KEY", "")

# Per-call network budget (seconds) and the pause before the single list retry
REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", "10"))
RETRY_DELAY     = float(os.environ.get("RETRY_DELAY", "1"))

# ── Storage backend ──────────────────────────────────────────────────────────
# "rest" → hosted PostgREST tables, "sql" → local database via SQLAlchemy
STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "rest")
DATABASE_URL    = os.environ.get("DATABASE_URL", "sqlite:///./yoga_scheduler.db")

# ── Flask ────────────────────────────────────────────────────────────────────
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
LOG_LEVEL  = os.environ.get("LOG_LEVEL", "INFO").upper()

# ── Local timezone ───────────────────────────────────────────────────────────
TZ_NAME = os.environ.get("TZ_NAME", "America/New_York")

# ── Email (SMTP) ─────────────────────────────────────────────────────────────
MAIL_SERVER         = os.environ.get("MAIL_SERVER", "")
MAIL_PORT           = int(os.environ.get("MAIL_PORT", "587"))
MAIL_USE_TLS        = _flag(os.environ.get("MAIL_USE_TLS"), "1")
MAIL_USERNAME       = os.environ.get("MAIL_USERNAME", "")
MAIL_PASSWORD       = os.environ.get("MAIL_PASSWORD", "")
MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "") or MAIL_USERNAME

# ── SMS (Twilio) ─────────────────────────────────────────────────────────────
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN  = os.environ.get("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.environ.get("TWILIO_FROM_NUMBER", "")

# ── Studio ───────────────────────────────────────────────────────────────────
STUDIO_LOCATION      = os.environ.get("STUDIO_LOCATION", "Main Studio")
PAYMENT_LINK_MAX_AGE = int(os.environ.get("PAYMENT_LINK_MAX_AGE", str(7 * 24 * 3600)))


def load_config(**overrides) -> dict:
    """
    Snapshot of the settings above as a Flask-style config dict.
    Keyword overrides win (tests pass TESTING=True, STORAGE_BACKEND="sql", ...).
    """
    cfg = {
        "SUPABASE_URL": SUPABASE_URL,
        "SUPABASE_ANON_KEY": SUPABASE_ANON_KEY,
        "REQUEST_TIMEOUT": REQUEST_TIMEOUT,
        "RETRY_DELAY": RETRY_DELAY,
        "STORAGE_BACKEND": STORAGE_BACKEND,
        "DATABASE_URL": DATABASE_URL,
        "SECRET_KEY": SECRET_KEY,
        "LOG_LEVEL": LOG_LEVEL,
        "TZ_NAME": TZ_NAME,
        "MAIL_SERVER": MAIL_SERVER,
        "MAIL_PORT": MAIL_PORT,
        "MAIL_USE_TLS": MAIL_USE_TLS,
        "MAIL_USERNAME": MAIL_USERNAME,
        "MAIL_PASSWORD": MAIL_PASSWORD,
        "MAIL_DEFAULT_SENDER": MAIL_DEFAULT_SENDER,
        "TWILIO_ACCOUNT_SID": TWILIO_ACCOUNT_SID,
        "TWILIO_AUTH_TOKEN": TWILIO_AUTH_TOKEN,
        "TWILIO_FROM_NUMBER": TWILIO_FROM_NUMBER,
        "STUDIO_LOCATION": STUDIO_LOCATION,
        "PAYMENT_LINK_MAX_AGE": PAYMENT_LINK_MAX_AGE,
    }
    if "SUPABASE_URL" in overrides:
        overrides["SUPABASE_URL"] = _normalize_url(overrides["SUPABASE_URL"])
    cfg.update(overrides)
    return cfg


# ── Startup logging ──────────────────────────────────────────────────────────
logger = logging.getLogger(__name__)
logger.info(f"[CONFIG] Loaded STORAGE_BACKEND={STORAGE_BACKEND}, SUPABASE_URL={SUPABASE_URL}, TZ={TZ_NAME}")
