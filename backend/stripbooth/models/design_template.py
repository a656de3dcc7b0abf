"""
StripBooth Backend — Design Template Model
===========================================

What:  Catalog of standard frame designs a customer can pick at intake
       (`templates` table). Not to be confused with print templates,
       which are physical A4 sheets.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from stripbooth.database import Base, utcnow


class DesignTemplate(Base):
    __tablename__ = "templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    preview_url: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<DesignTemplate(id={self.id}, name='{self.name}')>"
