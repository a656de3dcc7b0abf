"""
StripBooth Backend — Project Routes
====================================

What:  Editing projects: CRUD plus the upload-screen and editor actions.
       POST /api/projects/{id}/save always answers 200 once the project is
       saved; a failed template allocation is reported in `template_error`.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import get_db_session
from stripbooth.schemas.common import DeleteResponse, ErrorResponse
from stripbooth.schemas.project import (
    AttachPhotoRequest,
    ProjectResponse,
    SaveEditRequest,
    SaveEditResponse,
)
from stripbooth.services.project_service import project_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Projects"])


@router.get("/projects", response_model=list[ProjectResponse])
async def list_projects(
    response: Response,
    status: Optional[str] = Query(default=None),
    order_by: Optional[str] = Query(default=None, alias="orderBy"),
    order_dir: Optional[str] = Query(default=None, alias="orderDir"),
    db: AsyncSession = Depends(get_db_session),
) -> list[ProjectResponse]:
    projects = await project_service.list_projects(db, status, order_by, order_dir)
    response.headers["X-Total-Count"] = str(len(projects))
    return projects


@router.post("/projects", status_code=201, response_model=ProjectResponse)
async def create_project(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    return await project_service.create_project(db, payload)


@router.get(
    "/projects/{project_id}",
    response_model=ProjectResponse,
    responses={404: {"description": "Project not found", "model": ErrorResponse}},
)
async def get_project(project_id: UUID, db: AsyncSession = Depends(get_db_session)) -> ProjectResponse:
    return ProjectResponse.model_validate(await project_service.get_project(db, project_id))


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    return await project_service.update_project(db, project_id, payload)


@router.delete("/projects/{project_id}", response_model=DeleteResponse)
async def delete_project(project_id: UUID, db: AsyncSession = Depends(get_db_session)) -> DeleteResponse:
    return await project_service.delete_project(db, project_id)


@router.post("/projects/{project_id}/photo", response_model=ProjectResponse, summary="Attach an uploaded photo")
async def attach_photo(
    project_id: UUID,
    data: AttachPhotoRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ProjectResponse:
    return await project_service.attach_photo(db, project_id, data.photo_url)


@router.post(
    "/projects/{project_id}/save",
    response_model=SaveEditResponse,
    summary="Save the editor canvas and pack the strip into print templates",
)
async def save_edit(
    project_id: UUID,
    data: SaveEditRequest,
    db: AsyncSession = Depends(get_db_session),
) -> SaveEditResponse:
    result = await project_service.save_edit(
        db,
        project_id,
        canvas_data=data.canvas_data,
        frame_color=data.frame_color,
        thumbnail_url=data.thumbnail_url,
    )
    if result.template_error:
        logger.warning("Editor save for project %s was partial: %s", project_id, result.template_error)
    return result


@router.post("/projects/{project_id}/complete", response_model=ProjectResponse)
async def mark_complete(project_id: UUID, db: AsyncSession = Depends(get_db_session)) -> ProjectResponse:
    return await project_service.mark_complete(db, project_id)
