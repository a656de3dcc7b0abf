"""
StripBooth Backend — Print Template, Slot and Sequence Models
==============================================================

What:  The physical packing model.
         PrintTemplate  — one A4 sheet with `total_slots` positions
         TemplateSlot   — one occupied position on a sheet
         TemplateSequence — per-year counter behind TMPL-<year>-<seq>
Who:   TemplateAllocator creates/updates slots; TemplateLifecycle moves
       sheets through filling → complete → downloaded → printed.

Invariants enforced by the schema:
    - template_number is unique
    - (template_id, position) is unique
    - position lies within 1..6
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from stripbooth.database import Base, utcnow
from stripbooth.lifecycle import TemplateStatus


class PrintTemplate(Base):
    """
    A fixed-capacity A4 print sheet.

    Status semantics:
        filling    — 0 <= slots_used < total_slots, accepting new strips
        complete   — every position occupied, ready for download
        downloaded — print-ready PNG exported, orders moved to to_print
        printed    — physical print confirmed
    """

    __tablename__ = "print_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TemplateStatus.FILLING.value
    )
    slots_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_slots: Mapped[int] = mapped_column(Integer, nullable=False, default=6)
    final_image_url: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    downloaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    printed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_print_templates_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<PrintTemplate(number='{self.template_number}', status='{self.status}', "
            f"slots={self.slots_used}/{self.total_slots})>"
        )


class TemplateSlot(Base):
    """One photo strip placed at `position` on a print template."""

    __tablename__ = "template_slots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("print_templates.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )
    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    photo_url: Mapped[Optional[str]] = mapped_column(Text)

    # Student identity copied from the order for the print layout
    student_name: Mapped[Optional[str]] = mapped_column(String(200))
    grade: Mapped[Optional[str]] = mapped_column(String(50))
    section: Mapped[Optional[str]] = mapped_column(String(50))
    package_type: Mapped[Optional[int]] = mapped_column(Integer)

    inserted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("template_id", "position", name="uq_template_slots_template_position"),
        CheckConstraint("position >= 1 AND position <= 6", name="ck_template_slots_position"),
        Index("idx_template_slots_order_id", "order_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<TemplateSlot(template_id={self.template_id}, position={self.position}, "
            f"order_id={self.order_id})>"
        )


class TemplateSequence(Base):
    """Last issued template sequence number for one calendar year."""

    __tablename__ = "template_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
