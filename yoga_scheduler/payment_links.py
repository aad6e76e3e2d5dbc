"""
payment_links.py – Signed Payment-Method Links
────────────────────────────────────────────
After registering, a student is shown one link per informal payment
method (Venmo, PayPal, Zelle, Cash App). Each link points back at
/pay/<token>, which records the click on the registration and then
redirects to the method's own page. Nothing is charged here.
────────────────────────────────────────────
"""

from __future__ import annotations

import logging
from typing import Dict
from urllib.parse import quote

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import SchedulerError, ValidationError
from .logic_models import Registration
from .settings import PAYMENT_METHODS

log = logging.getLogger(__name__)

SALT = "yoga-payment-link"


class LinkExpired(SchedulerError):
    status_code = 410


class InvalidLink(ValidationError):
    pass


# ── Serializer setup ────────────────────────────────────────────────
def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=SALT)


# ── Generate ────────────────────────────────────────────────────────
def payment_link_token(secret_key: str, registration_id: str, method: str) -> str:
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Unknown payment method: {method}", method=method)
    return _serializer(secret_key).dumps({"registration": str(registration_id), "method": method})


def payment_links(secret_key: str, registration_id: str, base_url: str = "") -> Dict[str, str]:
    """{method: '<base_url>/pay/<token>'} for every configured method."""
    base = base_url.rstrip("/")
    return {m: f"{base}/pay/{payment_link_token(secret_key, registration_id, m)}" for m in PAYMENT_METHODS}


# ── Verify ──────────────────────────────────────────────────────────
def verify_payment_link(secret_key: str, token: str, max_age: int) -> Dict[str, str]:
    """Returns {'registration': id, 'method': m}; raises LinkExpired / InvalidLink."""
    try:
        data = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired:
        log.info("[PAY] expired payment link")
        raise LinkExpired("Expired link")
    except BadSignature:
        log.warning("[PAY] payment link with bad signature")
        raise InvalidLink("Invalid link")
    if not isinstance(data, dict) or data.get("method") not in PAYMENT_METHODS or not data.get("registration"):
        raise InvalidLink("Invalid link")
    return data


def destination_url(method: str, registration: Registration) -> str:
    """The payment method's page, with amount and a reference filled in where it takes them."""
    return PAYMENT_METHODS[method].format(
        amount=f"{registration.payment_amount:.2f}",
        reference=quote(f"yoga-{registration.id}"),
    )
