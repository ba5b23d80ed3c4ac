# brocante/app/services/__init__.py
"""
Services layer for business logic.
Keeps API endpoints thin and business logic testable and reusable.
"""

from brocante.app.services.products import (
    ProductService,
    ProductNotFoundError,
    ProductInUseError,
    generate_slug,
)
from brocante.app.services.reservations import (
    ReservationService,
    ReservationNotFoundError,
    ProductUnavailableError,
    InvalidReservationStatusError,
    InvalidStatusTransitionError,
    parse_pickup_time,
)
from brocante.app.services.sweeper import ReservationSweeper
from brocante.app.services.pickup_slots import PickupSlot, PickupSlotService
from brocante.app.services.notify import notify_reservation_created
from brocante.app.services.faqs import list_faqs, create_faq

__all__ = [
    # Product store
    "ProductService",
    "ProductNotFoundError",
    "ProductInUseError",
    "generate_slug",
    # Reservation lifecycle
    "ReservationService",
    "ReservationNotFoundError",
    "ProductUnavailableError",
    "InvalidReservationStatusError",
    "InvalidStatusTransitionError",
    "parse_pickup_time",
    "ReservationSweeper",
    # Pickup slots
    "PickupSlot",
    "PickupSlotService",
    # Notifications
    "notify_reservation_created",
    # FAQs
    "list_faqs",
    "create_faq",
]
