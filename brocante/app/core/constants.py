"""
Shared constants for the backend application.
"""
# ---------------------------------------------------------------------------
# Reservation statuses
# ---------------------------------------------------------------------------
RESERVATION_STATUSES = ("pending", "confirmed", "completed", "cancelled", "expired")

# Transitions an admin may make. pending -> expired belongs to the sweep only.
ALLOWED_STATUS_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("completed", "cancelled"),
}

DEFAULT_HOLD_HOURS = 48
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60

# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
PRODUCT_CATEGORIES = ("furniture", "equipment", "decor")

MAX_PRODUCT_IMAGES = 8
