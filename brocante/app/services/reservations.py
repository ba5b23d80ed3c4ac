# brocante/app/services/reservations.py
"""
Reservation lifecycle: reserve -> hold -> expire/confirm/cancel -> release.

Product.is_available is the only thing keeping two customers from holding the
same item, so every path that creates, cancels or expires a reservation
changes the reservation row and the product flag in one transaction.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Union

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.core.constants import (
    RESERVATION_STATUSES,
    ALLOWED_STATUS_TRANSITIONS,
    DEFAULT_HOLD_HOURS,
)
from brocante.app.core.exceptions import (
    ServiceError,
    ValidationError,
    NotFoundError,
    ConflictError,
    DataAccessError,
)
from brocante.app.core.logging import get_logger
from brocante.app.models.product import Product
from brocante.app.models.reservation import Reservation
from brocante.app.services.products import ProductNotFoundError

logger = get_logger(__name__)

# Import metrics
try:
    from brocante.app.core.metrics import (
        reservations_created_total,
        reservations_rejected_total,
        reservations_expired_total,
        reservation_status_changes_total,
    )
except ImportError:
    reservations_created_total = None
    reservations_rejected_total = None
    reservations_expired_total = None
    reservation_status_changes_total = None


class ReservationNotFoundError(NotFoundError):
    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__("Reservierung nicht gefunden")


class ProductUnavailableError(ConflictError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Produkt ist nicht mehr verfügbar")


class InvalidReservationStatusError(ValidationError):
    def __init__(self, status: str):
        self.status = status
        super().__init__(
            f"Ungültiger Status '{status}', erlaubt: {', '.join(RESERVATION_STATUSES)}"
        )


class InvalidStatusTransitionError(ConflictError):
    def __init__(self, reservation_id: str, current_status: str, new_status: str):
        self.reservation_id = reservation_id
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(
            f"Reservierung {reservation_id} kann nicht von '{current_status}' auf '{new_status}' wechseln"
        )


def parse_pickup_time(value: Union[str, datetime, None]) -> datetime:
    """
    Parse an ISO-8601 pickup time (a trailing "Z" is accepted) into naive UTC.
    Naive input is taken to be UTC already.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Abholzeit ist erforderlich")
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Ungültige Abholzeit: {value}")
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except (OverflowError, ValueError):
            # offset pushes the value past datetime.min/max
            raise ValidationError(f"Ungültige Abholzeit: {value}")
    return parsed


class ReservationService:
    """Service class for the reservation lifecycle."""

    def __init__(
        self,
        session: AsyncSession,
        hold_hours: int = DEFAULT_HOLD_HOURS,
        release_on_cancel: bool = True,
    ):
        self.session = session
        self.hold = timedelta(hours=hold_hours)
        self.release_on_cancel = release_on_cancel

    async def create_reservation(
        self,
        product_id: str,
        customer_name: str,
        customer_phone: str,
        pickup_time: Union[str, datetime],
        now: Optional[datetime] = None,
    ) -> Reservation:
        """
        Reserve an available product for a customer.

        The availability check and the flip to unavailable are one conditional
        UPDATE, so of two concurrent requests for the same product only one
        can win. The reservation insert shares that transaction.

        Raises:
            ValidationError: blank name/phone, bad or past pickup time
            ProductNotFoundError: unknown product_id
            ProductUnavailableError: product is already reserved or sold
            DataAccessError: the database failed; nothing was written
        """
        now = now or datetime.utcnow()
        customer_name = (customer_name or "").strip()
        customer_phone = (customer_phone or "").strip()
        if not customer_name:
            raise ValidationError("Name ist erforderlich")
        if not customer_phone:
            raise ValidationError("Telefonnummer ist erforderlich")
        pickup_at = parse_pickup_time(pickup_time)
        if pickup_at <= now:
            raise ValidationError("Abholzeit muss in der Zukunft liegen")

        try:
            claimed = await self.session.execute(
                update(Product)
                .where(Product.id == product_id, Product.is_available == True)  # noqa: E712
                .values(is_available=False)
            )
            if claimed.rowcount != 1:
                await self.session.rollback()
                exists = await self.session.scalar(select(Product.id).where(Product.id == product_id))
                if exists is None:
                    self._count_rejection("not_found")
                    raise ProductNotFoundError(product_id)
                self._count_rejection("unavailable")
                raise ProductUnavailableError(product_id)

            reservation = Reservation(
                product_id=product_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                pickup_time=pickup_at,
                status="pending",
                created_at=now,
                expires_at=now + self.hold,
            )
            self.session.add(reservation)
            await self.session.commit()
        except ServiceError:
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Reservation insert failed", product_id=product_id, error=str(e))
            raise DataAccessError("Fehler bei der Reservierung", detail=str(e)) from e

        if reservations_created_total is not None:
            reservations_created_total.inc()
        logger.info(
            "Reservation created",
            reservation_id=reservation.id,
            product_id=product_id,
            expires_at=reservation.expires_at.isoformat(),
        )
        return reservation

    async def get_reservation(self, reservation_id: str) -> Reservation:
        try:
            reservation = await self.session.get(Reservation, reservation_id)
        except SQLAlchemyError as e:
            logger.error("Reservation lookup failed", reservation_id=reservation_id, error=str(e))
            raise DataAccessError("Fehler beim Laden der Reservierung", detail=str(e)) from e
        if not reservation:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    async def list_reservations_with_products(self) -> List[Dict[str, Any]]:
        """Admin overview: every reservation with product name, price and cover image, newest first."""
        result = await self.session.execute(
            select(Reservation, Product.name, Product.price, Product.image_urls)
            .outerjoin(Product, Reservation.product_id == Product.id)
            .order_by(Reservation.created_at.desc())
        )
        rows = []
        for reservation, name, price, image_urls in result.all():
            rows.append({
                "id": reservation.id,
                "product_id": reservation.product_id,
                "customer_name": reservation.customer_name,
                "customer_phone": reservation.customer_phone,
                "pickup_time": reservation.pickup_time,
                "status": reservation.status,
                "created_at": reservation.created_at,
                "expires_at": reservation.expires_at,
                "product_name": name,
                "product_price": price,
                "product_cover_image": image_urls[0] if image_urls else None,
            })
        return rows

    async def update_status(self, reservation_id: str, new_status: Optional[str]) -> Reservation:
        """
        Admin status change along the lifecycle:
        pending -> confirmed | cancelled, confirmed -> completed | cancelled.
        Setting the current status again is a no-op. A cancellation makes the
        product reservable again when release_on_cancel is set, unless the
        product was marked sold in the meantime.
        """
        new_status = (new_status or "").strip()
        if not new_status:
            raise ValidationError("Status ist erforderlich")
        if new_status not in RESERVATION_STATUSES:
            raise InvalidReservationStatusError(new_status)

        reservation = await self.get_reservation(reservation_id)
        current = reservation.status
        if current == new_status:
            return reservation
        if new_status not in ALLOWED_STATUS_TRANSITIONS.get(current, ()):
            raise InvalidStatusTransitionError(reservation_id, current, new_status)

        try:
            changed = await self.session.execute(
                update(Reservation)
                .where(Reservation.id == reservation_id, Reservation.status == current)
                .values(status=new_status)
            )
            if changed.rowcount != 1:
                # Someone else (sweep or another admin) moved it first
                await self.session.rollback()
                await self.session.refresh(reservation)
                raise InvalidStatusTransitionError(reservation_id, reservation.status, new_status)
            if new_status == "cancelled" and self.release_on_cancel:
                await self.session.execute(
                    update(Product)
                    .where(Product.id == reservation.product_id, Product.sold_at.is_(None))
                    .values(is_available=True)
                )
            await self.session.commit()
        except ServiceError:
            raise
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Reservation status update failed", reservation_id=reservation_id, error=str(e))
            raise DataAccessError("Fehler beim Aktualisieren der Reservierung", detail=str(e)) from e

        await self.session.refresh(reservation)
        if reservation_status_changes_total is not None:
            reservation_status_changes_total.labels(status=new_status).inc()
        logger.info(
            "Reservation status changed",
            reservation_id=reservation_id,
            old_status=current,
            new_status=new_status,
        )
        return reservation

    async def reconcile_expired(self, now: Optional[datetime] = None) -> int:
        """
        Expire pending reservations past expires_at and release their products
        (sold products stay unavailable).

        Each row is moved with a conditional UPDATE (status must still be
        'pending'), and the product is only released when that UPDATE hit,
        so overlapping sweeps or a concurrent admin action cannot release a
        product twice. Returns the number of reservations expired.
        """
        now = now or datetime.utcnow()
        try:
            result = await self.session.execute(
                select(Reservation.id, Reservation.product_id).where(
                    Reservation.status == "pending",
                    Reservation.expires_at < now,
                )
            )
            stale = result.all()
            expired = 0
            for reservation_id, product_id in stale:
                moved = await self.session.execute(
                    update(Reservation)
                    .where(Reservation.id == reservation_id, Reservation.status == "pending")
                    .values(status="expired")
                )
                if moved.rowcount != 1:
                    continue
                await self.session.execute(
                    update(Product)
                    .where(Product.id == product_id, Product.sold_at.is_(None))
                    .values(is_available=True)
                )
                expired += 1
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Expiry reconciliation failed", error=str(e))
            raise DataAccessError("Fehler beim Ablaufen der Reservierungen", detail=str(e)) from e

        if expired:
            if reservations_expired_total is not None:
                reservations_expired_total.inc(expired)
            logger.info("Expired reservations released", count=expired)
        return expired

    @staticmethod
    def _count_rejection(reason: str) -> None:
        if reservations_rejected_total is not None:
            reservations_rejected_total.labels(reason=reason).inc()
