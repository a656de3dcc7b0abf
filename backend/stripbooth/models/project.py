"""
StripBooth Backend — Project SQLAlchemy Model
==============================================

What:  One photo-editing job per order (`projects` table).
How:   Created at order intake with status `awaiting_photo`; the upload
       screen sets photo_url, the editor stores canvas_data and the
       exported strip in thumbnail_url.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stripbooth.database import Base, utcnow
from stripbooth.lifecycle import ProjectStatus


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("templates.id", ondelete="SET NULL"), nullable=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )

    # Uploaded original and the exported (edited) strip, as media keys or URLs
    photo_url: Mapped[Optional[str]] = mapped_column(Text)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text)

    # Serialized drawing elements + image transform from the canvas editor
    canvas_data: Mapped[Optional[Any]] = mapped_column(JSON)
    frame_color: Mapped[Optional[str]] = mapped_column(String(20))

    # Denormalized from the order so the editor needs one fetch
    customer_name: Mapped[Optional[str]] = mapped_column(String(200))
    grade: Mapped[Optional[str]] = mapped_column(String(50))
    section: Mapped[Optional[str]] = mapped_column(String(50))
    package_type: Mapped[Optional[int]] = mapped_column(Integer)
    design_type: Mapped[Optional[str]] = mapped_column(String(20))

    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ProjectStatus.AWAITING_PHOTO.value
    )

    photo_uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_projects_order_id", "order_id"),
        Index("idx_projects_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, order_id={self.order_id}, status='{self.status}')>"
