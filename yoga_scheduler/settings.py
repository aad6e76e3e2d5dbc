# yoga_scheduler/settings.py

from datetime import timedelta

# ──────────────────────────────────────────────────────────────
# Central class, pricing & payment settings
# Update these values when the studio schedule or links change
# ──────────────────────────────────────────────────────────────

# Every class runs for one hour; end_time is always derived from this
CLASS_DURATION = timedelta(hours=1)

# Admin "repeat weekly" field accepts 0 (off) up to half a year
MAX_WEEKLY_REPEAT = 26

PAYMENT_STATUSES = ("pending", "completed", "failed")

# New registrations are marked completed; no gateway is wired in
DEFAULT_PAYMENT_STATUS = "completed"

# Informal payment methods shown after registering.
# {amount} and {reference} are filled in per registration.
PAYMENT_METHODS = {
    "venmo": "https://venmo.com/?txn=pay&amount={amount}&note={reference}",
    "paypal": "https://www.paypal.com/paypalme/yogastudio/{amount}",
    "zelle": "https://www.zellepay.com/",
    "cashapp": "https://cash.app/$yogastudio/{amount}",
}

# Class list filter buckets: (above, up to and including), None = open ended
#   low $0-5, medium $6-10, high $11+
PRICE_RANGES = {
    "low": (None, 5),
    "medium": (5, 10),
    "high": (10, None),
}

DATE_RANGES = {
    "today": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}

# Admin "enrolled" view shows classes this far either side of now
ENROLLED_WINDOW = timedelta(days=7)

SORT_FIELDS = ("date", "name", "instructor", "price")
