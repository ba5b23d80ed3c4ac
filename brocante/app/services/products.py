# brocante/app/services/products.py
"""
Product store - listing, lookup and admin maintenance of products.
"""
import re
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brocante.app.core.constants import MAX_PRODUCT_IMAGES
from brocante.app.core.exceptions import NotFoundError, ConflictError, DataAccessError
from brocante.app.core.logging import get_logger
from brocante.app.models.product import Product, new_product_id
from brocante.app.models.reservation import Reservation

logger = get_logger(__name__)

_UMLAUTS = (("ä", "ae"), ("ö", "oe"), ("ü", "ue"), ("ß", "ss"))

# Fields an admin may change through update_product
UPDATABLE_FIELDS = ("name", "description", "price", "category", "image_urls", "is_available", "is_pinned")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Produkt nicht gefunden")


class ProductInUseError(ConflictError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Produkt hat Reservierungen und kann nicht gelöscht werden")


def generate_slug(name: str, product_id: Optional[str] = None) -> str:
    """
    URL slug from a product name: lower-case, umlauts transliterated,
    everything else non-alphanumeric dropped. With product_id the first
    8 characters of the id are appended so slugs stay unique.
    """
    slug = name.lower().strip()
    for src, dst in _UMLAUTS:
        slug = slug.replace(src, dst)
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    if product_id:
        slug = f"{slug}-{product_id[:8]}" if slug else product_id[:8]
    return slug


def _normalize_image_urls(image_urls) -> List[str]:
    if not image_urls:
        return []
    return [str(url).strip() for url in image_urls if url and str(url).strip()][:MAX_PRODUCT_IMAGES]


class ProductService:
    """Service class for product operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _storefront_order():
        return (Product.is_pinned.desc(), Product.created_at.desc())

    async def list_available(self, category: Optional[str] = None) -> List[Product]:
        """Products that can still be reserved. category "all" or None means no filter."""
        query = select(Product).where(Product.is_available.is_(True))
        if category and category != "all":
            query = query.where(Product.category == category)
        result = await self.session.execute(query.order_by(*self._storefront_order()))
        return list(result.scalars().all())

    async def list_all(self) -> List[Product]:
        """Admin listing, sold and reserved products included."""
        result = await self.session.execute(select(Product).order_by(*self._storefront_order()))
        return list(result.scalars().all())

    async def get_product(self, product_id: str) -> Product:
        product = await self.session.get(Product, product_id)
        if not product:
            raise ProductNotFoundError(product_id)
        return product

    async def get_by_slug(self, slug: str) -> Product:
        result = await self.session.execute(select(Product).where(Product.slug == slug))
        product = result.scalar_one_or_none()
        if not product:
            raise ProductNotFoundError(slug)
        return product

    async def create_product(self, data: Dict[str, Any]) -> Product:
        product_id = new_product_id()
        product = Product(
            id=product_id,
            name=data["name"],
            slug=generate_slug(data["name"], product_id),
            description=data["description"],
            price=data["price"],
            category=data["category"],
            image_urls=_normalize_image_urls(data.get("image_urls")),
            is_available=data.get("is_available", True),
            is_pinned=data.get("is_pinned", False),
        )
        self.session.add(product)
        await self._commit("create_product")
        await self.session.refresh(product)
        logger.info("Product created", product_id=product.id, category=product.category)
        return product

    async def update_product(self, product_id: str, data: Dict[str, Any]) -> Product:
        """Partial update. None values are ignored."""
        product = await self.get_product(product_id)
        for field, value in data.items():
            if field not in UPDATABLE_FIELDS or value is None:
                continue
            if field == "image_urls":
                value = _normalize_image_urls(value)
            setattr(product, field, value)
        if data.get("name"):
            product.slug = generate_slug(product.name, product.id)
        if data.get("is_available"):
            product.sold_at = None
        await self._commit("update_product")
        await self.session.refresh(product)
        return product

    async def set_availability(self, product_id: str, is_available: bool) -> Product:
        product = await self.get_product(product_id)
        product.is_available = is_available
        if is_available:
            product.sold_at = None
        await self._commit("set_availability")
        logger.info("Product availability changed", product_id=product_id, is_available=is_available)
        return product

    async def mark_sold(self, product_id: str) -> Product:
        """Take the product off the storefront for good; open reservations no longer release it."""
        product = await self.get_product(product_id)
        product.is_available = False
        product.sold_at = datetime.utcnow()
        await self._commit("mark_sold")
        logger.info("Product marked sold", product_id=product_id)
        return product

    async def toggle_pin(self, product_id: str) -> bool:
        """Flip the pinned flag, return the new value."""
        product = await self.get_product(product_id)
        product.is_pinned = not product.is_pinned
        await self._commit("toggle_pin")
        return product.is_pinned

    async def delete_product(self, product_id: str) -> None:
        product = await self.get_product(product_id)
        reservation_count = await self.session.scalar(
            select(func.count(Reservation.id)).where(Reservation.product_id == product_id)
        )
        if reservation_count:
            raise ProductInUseError(product_id)
        await self.session.delete(product)
        await self._commit("delete_product")
        logger.info("Product deleted", product_id=product_id)

    async def _commit(self, operation: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Product store failure", operation=operation, error=str(e))
            raise DataAccessError("Fehler beim Speichern des Produkts", detail=str(e)) from e
