# brocante/app/services/notify.py
"""Post a webhook for every new reservation (picked up by the shop's automation)."""
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from zoneinfo import ZoneInfo

import httpx

from brocante.app.core.logging import get_logger
from brocante.app.models.product import Product
from brocante.app.models.reservation import Reservation
from brocante.app.services.pickup_slots import format_day

logger = get_logger(__name__)

WEBHOOK_TIMEOUT = 10.0


def _iso_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def format_pickup_time(pickup_time: datetime, tz: str = "Europe/Zurich") -> str:
    """Naive UTC pickup time as shown to the shop: 'Samstag, 1. Nov. 2025, 17:00'."""
    local = pickup_time.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz))
    return f"{format_day(local.date())} {local.year}, {local:%H:%M}"


def build_reservation_payload(
    reservation: Reservation,
    product: Product,
    tz: str = "Europe/Zurich",
) -> Dict[str, Any]:
    """Flat payload, one key per field, so the receiving workflow needs no nesting."""
    return {
        "event": "reservation.created",
        "reservation_id": reservation.id,
        "customer_name": reservation.customer_name,
        "customer_phone": reservation.customer_phone,
        "pickup_time": format_pickup_time(reservation.pickup_time, tz),
        "pickup_time_raw": _iso_utc(reservation.pickup_time),
        "status": reservation.status,
        "product_id": product.id,
        "product_name": product.name,
        "product_price": f"CHF {product.price}",
        "product_image": product.image_urls[0] if product.image_urls else None,
        "created_at": _iso_utc(reservation.created_at),
    }


async def notify_reservation_created(
    webhook_url: Optional[str],
    reservation: Reservation,
    product: Product,
    tz: str = "Europe/Zurich",
) -> bool:
    """
    Send the reservation.created webhook. Returns True on a 2xx answer.
    Never raises: the reservation is already committed at this point.
    """
    if not webhook_url:
        return False
    payload = build_reservation_payload(reservation, product, tz)
    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT) as client:
            resp = await client.post(webhook_url, json=payload)
        if resp.status_code >= 400:
            logger.warning(
                "Reservation webhook rejected",
                reservation_id=reservation.id,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            return False
        logger.info("Reservation webhook sent", reservation_id=reservation.id)
        return True
    except httpx.HTTPError as e:
        logger.error("Reservation webhook failed", reservation_id=reservation.id, error=str(e))
        return False
