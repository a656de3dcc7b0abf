"""
StripBooth Backend — Order SQLAlchemy Model
============================================

What:  ORM model for the `orders` table: one row per cashier sale.
Who:   Written by OrderService at intake; advanced by ProjectService
       (photo upload, editor save) and the template lifecycle cascades.

Table Design:
    - package_type: 2 or 4 photo-strip copies; also the number of template
      slots the order occupies once packed.
    - order_status / photo_status: values of lifecycle.OrderStatus /
      lifecycle.PhotoStatus stored as short strings.
    - one timestamp column per status transition.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stripbooth.database import Base, utcnow
from stripbooth.lifecycle import OrderStatus, PhotoStatus


class Order(Base):
    """
    A customer's photo-booth order.

    Lifecycle:
        pending → photo_uploaded → completed → to_print → packed → delivered
    """

    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ── Customer ──────────────────────────────────────────────────────────
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    grade: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    section: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    # ── Package ───────────────────────────────────────────────────────────
    package_type: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    design_type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")
    standard_design_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # ── Raffle & Payment ──────────────────────────────────────────────────
    included_raffles: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    additional_raffles: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_raffles: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    raffle_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    package_base_cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="cash")
    gcash_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # ── Status ────────────────────────────────────────────────────────────
    order_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=OrderStatus.PENDING.value
    )
    photo_status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=PhotoStatus.PENDING.value
    )

    # ── Transition Timestamps ─────────────────────────────────────────────
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    photo_uploaded_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    project_completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    packed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    delivery_recipient: Mapped[Optional[str]] = mapped_column(String(200))
    delivery_notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_orders_order_status", "order_status"),
        Index("idx_orders_order_date", "order_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, customer='{self.customer_name}', "
            f"package={self.package_type}, status='{self.order_status}')>"
        )
