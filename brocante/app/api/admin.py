"""Admin console API. Every route requires X-Admin-Token (see main.py)."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.api.deps import get_session
from brocante.app.core.exceptions import ServiceError
from brocante.app.core.logging import get_logger
from brocante.app.core.settings import get_settings
from brocante.app.schemas import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    AdminReservationResponse,
    FaqCreate,
    FaqResponse,
)
from brocante.app.services.faqs import create_faq
from brocante.app.services.products import ProductService
from brocante.app.services.reservations import ReservationService

router = APIRouter()
logger = get_logger(__name__)


def _handle_service_error(e: ServiceError):
    """Convert service exceptions to HTTP exceptions."""
    raise HTTPException(status_code=e.status_code, detail=e.message)


# ============================================
# PRODUCTS
# ============================================

@router.get("/products", response_model=List[ProductResponse])
async def list_all_products(session: AsyncSession = Depends(get_session)):
    """Alle Produkte inklusive reservierte und verkaufte."""
    return await ProductService(session).list_all()


@router.post("/products", response_model=ProductResponse, status_code=201)
async def create_product(data: ProductCreate, session: AsyncSession = Depends(get_session)):
    try:
        return await ProductService(session).create_product(data.model_dump())
    except ServiceError as e:
        _handle_service_error(e)


@router.patch("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    session: AsyncSession = Depends(get_session),
):
    try:
        return await ProductService(session).update_product(product_id, data.model_dump(exclude_unset=True))
    except ServiceError as e:
        _handle_service_error(e)


@router.post("/products/{product_id}/mark-sold")
async def mark_product_sold(product_id: str, session: AsyncSession = Depends(get_session)):
    try:
        await ProductService(session).mark_sold(product_id)
    except ServiceError as e:
        _handle_service_error(e)
    return {"success": True, "message": "Produkt als verkauft markiert"}


@router.post("/products/{product_id}/toggle-pin")
async def toggle_product_pin(product_id: str, session: AsyncSession = Depends(get_session)):
    try:
        is_pinned = await ProductService(session).toggle_pin(product_id)
    except ServiceError as e:
        _handle_service_error(e)
    return {
        "success": True,
        "message": "Produkt angepinnt" if is_pinned else "Produkt entpinnt",
        "is_pinned": is_pinned,
    }


@router.delete("/products/{product_id}")
async def delete_product(product_id: str, session: AsyncSession = Depends(get_session)):
    try:
        await ProductService(session).delete_product(product_id)
    except ServiceError as e:
        _handle_service_error(e)
    return {"success": True, "message": "Produkt gelöscht"}


# ============================================
# RESERVATIONS
# ============================================

@router.get("/reservations", response_model=List[AdminReservationResponse])
async def list_reservations(session: AsyncSession = Depends(get_session)):
    return await ReservationService(session).list_reservations_with_products()


@router.post("/reservations/sweep")
async def run_sweep(session: AsyncSession = Depends(get_session)):
    """Abgelaufene Reservierungen sofort freigeben, ohne auf den nächsten Zyklus zu warten."""
    settings = get_settings()
    service = ReservationService(
        session,
        hold_hours=settings.RESERVATION_HOLD_HOURS,
        release_on_cancel=settings.RELEASE_ON_CANCEL,
    )
    try:
        expired = await service.reconcile_expired()
    except ServiceError as e:
        logger.error(
            "Manual reservation sweep failed",
            error=e.message,
            detail=getattr(e, "detail", None),
        )
        _handle_service_error(e)
    logger.info("Manual reservation sweep", expired=expired)
    return {"expired": expired}


# ============================================
# FAQ
# ============================================

@router.post("/faqs", response_model=FaqResponse, status_code=201)
async def add_faq(data: FaqCreate, session: AsyncSession = Depends(get_session)):
    try:
        return await create_faq(session, data.question, data.answer, data.order)
    except ServiceError as e:
        logger.error("FAQ creation failed", error=e.message, detail=getattr(e, "detail", None))
        _handle_service_error(e)
