from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.api.deps import get_session, require_admin_token
from brocante.app.core.exceptions import ServiceError, DataAccessError
from brocante.app.core.limiter import limiter
from brocante.app.core.logging import get_logger
from brocante.app.core.settings import get_settings
from brocante.app.models.product import Product
from brocante.app.schemas import ReservationCreate, ReservationResponse, ReservationStatusUpdate
from brocante.app.services.notify import notify_reservation_created
from brocante.app.services.reservations import ReservationService

router = APIRouter()
logger = get_logger(__name__)

RESERVATION_RATE_LIMIT = get_settings().RESERVATION_RATE_LIMIT


def _service(session: AsyncSession) -> ReservationService:
    settings = get_settings()
    return ReservationService(
        session,
        hold_hours=settings.RESERVATION_HOLD_HOURS,
        release_on_cancel=settings.RELEASE_ON_CANCEL,
    )


def _handle_service_error(e: ServiceError):
    """Convert service exceptions to HTTP exceptions."""
    raise HTTPException(status_code=e.status_code, detail=e.message)


# --- 1. RESERVIERUNG ANLEGEN ---
@router.post("", response_model=ReservationResponse, status_code=201)
@limiter.limit(RESERVATION_RATE_LIMIT)
async def create_reservation(
    request: Request,
    data: ReservationCreate,
    session: AsyncSession = Depends(get_session),
):
    """
    Reserviert ein verfügbares Produkt für 48 Stunden.

    404 wenn das Produkt unbekannt ist, 409 wenn es schon reserviert
    oder verkauft ist, 400 bei ungültigen Angaben.
    """
    logger.info("Creating reservation", product_id=data.product_id, pickup_time=data.pickup_time)
    try:
        reservation = await _service(session).create_reservation(
            product_id=data.product_id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            pickup_time=data.pickup_time,
        )
    except DataAccessError as e:
        logger.error("Reservation creation failed", product_id=data.product_id, error=e.detail)
        _handle_service_error(e)
    except ServiceError as e:
        logger.warning(
            "Reservation rejected",
            product_id=data.product_id,
            error=e.message,
            error_code=e.status_code,
        )
        _handle_service_error(e)

    settings = get_settings()
    if settings.RESERVATION_WEBHOOK_URL:
        await _send_webhook(session, reservation, settings)
    return reservation


async def _send_webhook(session: AsyncSession, reservation, settings) -> None:
    """The reservation is committed already; a failure here must not turn into an error response."""
    try:
        product = await session.get(Product, reservation.product_id)
    except SQLAlchemyError as e:
        logger.error(
            "Reservation webhook skipped, product lookup failed",
            reservation_id=reservation.id,
            error=str(e),
        )
        return
    if product is None:
        return
    await notify_reservation_created(
        settings.RESERVATION_WEBHOOK_URL,
        reservation,
        product,
        tz=settings.PICKUP_TIMEZONE,
    )


# --- 2. RESERVIERUNG ABRUFEN ---
@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(reservation_id: str, session: AsyncSession = Depends(get_session)):
    try:
        return await _service(session).get_reservation(reservation_id)
    except ServiceError as e:
        _handle_service_error(e)


# --- 3. STATUS ÄNDERN (Admin) ---
@router.patch("/{reservation_id}/status", dependencies=[Depends(require_admin_token)])
async def update_reservation_status(
    reservation_id: str,
    data: ReservationStatusUpdate,
    session: AsyncSession = Depends(get_session),
):
    try:
        reservation = await _service(session).update_status(reservation_id, data.status)
    except ServiceError as e:
        logger.warning(
            "Reservation status update rejected",
            reservation_id=reservation_id,
            status=data.status,
            error=e.message,
            error_code=e.status_code,
        )
        _handle_service_error(e)
    return {"success": True, "status": reservation.status}
