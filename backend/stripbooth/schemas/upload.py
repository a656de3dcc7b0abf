"""
StripBooth Backend — Upload Schemas
====================================
"""

from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    storage_key: str = Field(description="Key inside the blob store, e.g. project-images/<id>/original-...")
    public_url: str = Field(description="URL the browser can load the object from")
    size: int = Field(description="Stored size in bytes")
    content_type: str
