"""
StripBooth Backend — Project Schemas
=====================================

What:  Contracts for the upload screen and the canvas editor.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from stripbooth.schemas.print_template import TemplateSlotResponse


class ProjectResponse(BaseModel):
    id: uuid.UUID
    name: str
    template_id: Optional[uuid.UUID] = None
    order_id: Optional[uuid.UUID] = None
    photo_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    canvas_data: Optional[Any] = None
    frame_color: Optional[str] = None
    customer_name: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None
    package_type: Optional[int] = None
    design_type: Optional[str] = None
    status: str
    photo_uploaded_at: Optional[datetime] = None
    last_edited_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AttachPhotoRequest(BaseModel):
    photo_url: str = Field(min_length=1, description="Storage key or URL of the uploaded original")


class SaveEditRequest(BaseModel):
    canvas_data: Optional[Any] = Field(default=None, description="Serialized drawing elements + image transform")
    frame_color: Optional[str] = Field(default=None, max_length=20)
    thumbnail_url: Optional[str] = Field(default=None, description="Exported strip image")


class SaveEditResponse(BaseModel):
    """
    Result of an editor save.

    The project save always succeeds first. `template_error` is set when
    packing the strip into print templates failed; the project stays saved.
    """
    project: ProjectResponse
    allocated_slots: List[TemplateSlotResponse] = Field(default_factory=list)
    template_error: Optional[str] = None
