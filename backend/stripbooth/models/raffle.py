"""
StripBooth Backend — Raffle Models
===================================

What:  `raffle_entries` (one ticket per order raffle number) and
       `raffle_winners` (snapshot written when an entry is drawn).

Invariants:
    - (order_id, raffle_number) is unique
    - an entry wins at most once: is_winner/won_at are set by a guarded
      UPDATE and raffle_winners.entry_id is unique
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stripbooth.database import Base, utcnow


class RaffleEntry(Base):
    __tablename__ = "raffle_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    grade: Mapped[Optional[str]] = mapped_column(String(50))
    section: Mapped[Optional[str]] = mapped_column(String(50))
    raffle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    won_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("order_id", "raffle_number", name="uq_raffle_entries_order_number"),
        Index("idx_raffle_entries_is_winner", "is_winner"),
    )

    def __repr__(self) -> str:
        return (
            f"<RaffleEntry(order_id={self.order_id}, number={self.raffle_number}, "
            f"is_winner={self.is_winner})>"
        )


class RaffleWinner(Base):
    __tablename__ = "raffle_winners"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("raffle_entries.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    grade: Mapped[Optional[str]] = mapped_column(String(50))
    section: Mapped[Optional[str]] = mapped_column(String(50))
    won_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    prize_details: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<RaffleWinner(entry_id={self.entry_id}, customer='{self.customer_name}')>"
