import secrets
import time
from datetime import datetime

from sqlalchemy import String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from brocante.app.core.base import Base


def new_reservation_id() -> str:
    """res_<epoch ms>_<8 hex chars>, sortable by creation time."""
    return f"res_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class Reservation(Base):
    """
    A customer's time-bound hold on a product.

    The product is referenced, not owned: deleting or editing a reservation
    never touches the product row except through ReservationService.
    Timestamps are naive UTC.
    """
    __tablename__ = 'reservations'
    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_reservation_id)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey('products.id'), nullable=False)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[str] = mapped_column(Text, nullable=False)
    pickup_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index('ix_reservations_product_id', 'product_id'),
        # Sweep query: pending rows past their expiry
        Index('ix_reservations_status_expires', 'status', 'expires_at'),
    )
