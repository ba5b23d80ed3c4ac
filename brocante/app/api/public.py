"""
Public storefront API
- No authentication required
- Only available products are listed; single products stay reachable by id/slug
"""
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.api.deps import get_session
from brocante.app.core.logging import get_logger
from brocante.app.core.settings import get_settings
from brocante.app.schemas import ProductResponse, PickupSlotResponse, FaqResponse
from brocante.app.services.faqs import list_faqs
from brocante.app.services.pickup_slots import PickupSlotService
from brocante.app.services.products import ProductService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/products", response_model=List[ProductResponse])
async def get_products(
    category: Optional[str] = Query(None, description="furniture / equipment / decor, or 'all'"),
    session: AsyncSession = Depends(get_session),
):
    """Verfügbare Produkte, angepinnte zuerst."""
    return await ProductService(session).list_available(category)


@router.get("/products/by-slug/{slug}", response_model=ProductResponse)
async def get_product_by_slug(slug: str, session: AsyncSession = Depends(get_session)):
    return await ProductService(session).get_by_slug(slug)


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, session: AsyncSession = Depends(get_session)):
    return await ProductService(session).get_product(product_id)


@router.get("/pickup-times", response_model=List[PickupSlotResponse])
async def get_pickup_times():
    """Mögliche Abholzeiten; vergangene Zeitfenster sind bereits herausgefiltert."""
    settings = get_settings()
    service = PickupSlotService(settings.PICKUP_TIMEZONE, settings.PICKUP_DAYS_AHEAD)
    return [
        PickupSlotResponse(datetime=slot.value, display=slot.label, value=slot.value)
        for slot in service.list_slots()
    ]


@router.get("/faqs", response_model=List[FaqResponse])
async def get_faqs(session: AsyncSession = Depends(get_session)):
    return await list_faqs(session)
