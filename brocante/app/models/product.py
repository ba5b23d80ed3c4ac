import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import String, DECIMAL, Text, Boolean, DateTime, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from brocante.app.core.base import Base


def new_product_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = 'products'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_product_id)
    name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[str] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2))
    category: Mapped[str] = mapped_column(String(32))  # furniture / equipment / decor
    image_urls: Mapped[List[str]] = mapped_column(JSON(), default=list)  # first one is the cover
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False)
    # Set by mark-sold; a sold product is never released by a cancel or expiry
    sold_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_products_is_available', 'is_available'),
        # Storefront listing: available products of a category, pinned first
        Index('ix_products_category_available', 'category', 'is_available'),
    )
