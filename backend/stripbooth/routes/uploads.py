"""
StripBooth Backend — Upload Routes
===================================

What:  Media ingress and egress for project images.
         POST /api/uploads/project-image   multipart: file, projectId, kind
         GET|HEAD /uploads/{key}           serves a stored object
How:   The route reads the multipart body and hands bytes to StorageService;
       the returned public_url is what the upload screen attaches to the
       project.
"""

import logging
import mimetypes
from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import FileResponse

from stripbooth.schemas.common import ErrorResponse
from stripbooth.schemas.upload import UploadResponse
from stripbooth.services.storage_service import storage_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Uploads"])


@router.post(
    "/api/uploads/project-image",
    status_code=201,
    response_model=UploadResponse,
    responses={400: {"description": "Missing projectId, empty or oversize file", "model": ErrorResponse}},
)
async def upload_project_image(
    request: Request,
    file: UploadFile = File(...),
    project_id: str = Form(default="", alias="projectId"),
    kind: Optional[str] = Form(default="image"),
) -> UploadResponse:
    try:
        content = await file.read()
        logger.info(
            "Received project image: project=%s kind=%s filename=%s size=%d",
            project_id,
            kind,
            file.filename or "unknown",
            len(content),
        )
        return await storage_service.store_project_image(
            project_id=project_id,
            kind=kind,
            filename=file.filename,
            content_type=file.content_type,
            content=content,
            request_base=str(request.base_url),
        )
    finally:
        await file.close()


@router.api_route(
    "/uploads/{key:path}",
    methods=["GET", "HEAD"],
    responses={404: {"description": "Object not found"}},
)
async def serve_upload(key: str) -> FileResponse:
    path = storage_service.locate(key)
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return FileResponse(
        path=str(path),
        media_type=media_type,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
