import logging
import re

from flask import request

from .errors import ValidationError

logger = logging.getLogger(__name__)


def normalize_phone(num: str | None, default_country: str = "1") -> str:
    """
    Normalise a phone number to E.164 for SMS:
      - strip spaces, dashes, brackets
      - 10-digit local numbers get the default country code
    """
    if not num:
        return ""
    digits = re.sub(r"\D", "", str(num))
    if not digits:
        return ""
    if str(num).strip().startswith("+"):
        return "+" + digits
    if len(digits) == 10:
        digits = default_country + digits
    return "+" + digits


def safe_execute(func, *args, label: str = "", **kwargs):
    """
    Wrapper for fire-and-forget side effects (emails, SMS).
    Logs success/failure without breaking the calling flow.
    """
    try:
        result = func(*args, **kwargs)
        logger.info(f"[SAFE EXEC OK] {label} → {result}")
        return result
    except Exception as e:
        logger.exception(f"[SAFE EXEC FAIL] {label}: {e}")
        return None


def json_body() -> dict:
    """Request JSON as a dict; anything else is a 400."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def arg_flag(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")
