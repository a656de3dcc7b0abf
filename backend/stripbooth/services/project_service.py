"""
StripBooth Backend — Project Service
=====================================

What:  Editing projects: CRUD, photo attachment from the upload screen and
       the editor's save, which also packs the strip into print templates.
How:   The editor save is a two-step operation:

           ┌──────────────────────┐  commit  ┌──────────────────────────┐
           │ project → completed  │────────▶ │ TemplateAllocator        │
           │ order   → completed  │          │ .allocate(order, strip)  │
           └──────────────────────┘          └──────────────────────────┘

       The project/order save is committed before allocation starts, so an
       allocation failure rolls back only the slot work and is reported in
       SaveEditResponse.template_error instead of failing the save.
Who:   routes/projects.py.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.database import utcnow
from stripbooth.exceptions import NotFoundError, StripBoothError, ValidationError
from stripbooth.lifecycle import OrderStatus, PhotoStatus, ProjectStatus, can_advance_order, parse_enum
from stripbooth.models.order import Order
from stripbooth.models.project import Project
from stripbooth.schemas.common import DeleteResponse
from stripbooth.schemas.print_template import TemplateSlotResponse
from stripbooth.schemas.project import ProjectResponse, SaveEditResponse
from stripbooth.services.payloads import (
    PROJECT_COLUMNS,
    coerce_datetime_fields,
    parse_optional_int,
    parse_uuid,
    resolve_ordering,
    sanitize_payload,
)
from stripbooth.services.template_allocator import template_allocator

logger = logging.getLogger(__name__)

PROJECT_DATETIME_FIELDS = ("photo_uploaded_at", "last_edited_at", "completed_at")


class ProjectService:
    """Business logic for editing projects."""

    # ── CRUD ──────────────────────────────────────────────────────────────

    async def list_projects(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        order_by: Optional[str] = None,
        order_dir: Optional[str] = None,
    ) -> List[ProjectResponse]:
        query = select(Project)
        if status:
            query = query.where(Project.status == status)
        query = query.order_by(resolve_ordering(Project, "projects", order_by, order_dir, "created_at"))
        result = await db.execute(query)
        return [ProjectResponse.model_validate(project) for project in result.scalars().all()]

    async def get_project(self, db: AsyncSession, project_id: uuid.UUID) -> Project:
        project = await db.get(Project, project_id)
        if project is None:
            raise NotFoundError(resource="project", resource_id=str(project_id))
        return project

    async def create_project(self, db: AsyncSession, payload: Dict[str, Any]) -> ProjectResponse:
        changes = self._clean_payload(payload)
        name = str(changes.get("name") or "").strip()
        if not name:
            raise ValidationError(message="Project name is required", field="name")
        changes["name"] = name
        changes.setdefault("status", ProjectStatus.AWAITING_PHOTO.value)

        now = utcnow()
        project = Project(created_at=now, updated_at=now, **changes)
        db.add(project)
        await db.flush()
        logger.info("Project created: id=%s, name='%s'", project.id, project.name)
        return ProjectResponse.model_validate(project)

    async def update_project(
        self, db: AsyncSession, project_id: uuid.UUID, payload: Dict[str, Any]
    ) -> ProjectResponse:
        project = await self.get_project(db, project_id)
        changes = self._clean_payload(payload)
        if "name" in changes and not str(changes["name"] or "").strip():
            raise ValidationError(message="Project name cannot be empty", field="name")

        for field, value in changes.items():
            setattr(project, field, value)
        if changes:
            project.updated_at = utcnow()
            await db.flush()
            logger.info("Project %s updated: %s", project.id, sorted(changes))
        return ProjectResponse.model_validate(project)

    async def delete_project(self, db: AsyncSession, project_id: uuid.UUID) -> DeleteResponse:
        project = await self.get_project(db, project_id)
        await db.delete(project)
        await db.flush()
        logger.info("Project deleted: id=%s", project_id)
        return DeleteResponse(id=project_id)

    # ── Workflow ──────────────────────────────────────────────────────────

    async def attach_photo(
        self, db: AsyncSession, project_id: uuid.UUID, photo_url: str
    ) -> ProjectResponse:
        """Upload screen: project → in_progress, its order → photo_uploaded."""
        project = await self.get_project(db, project_id)
        now = utcnow()
        project.photo_url = photo_url
        project.status = ProjectStatus.IN_PROGRESS.value
        project.photo_uploaded_at = now
        project.updated_at = now

        order = await self._linked_order(db, project)
        if order is not None and can_advance_order(order.order_status, OrderStatus.PHOTO_UPLOADED):
            order.order_status = OrderStatus.PHOTO_UPLOADED.value
            order.photo_status = PhotoStatus.UPLOADED.value
            order.photo_uploaded_date = now
            order.updated_at = now

        await db.flush()
        logger.info("Photo attached to project %s (order %s)", project.id, project.order_id)
        return ProjectResponse.model_validate(project)

    async def mark_complete(self, db: AsyncSession, project_id: uuid.UUID) -> ProjectResponse:
        """Manual override from the projects list; no template allocation."""
        project = await self.get_project(db, project_id)
        now = utcnow()
        project.status = ProjectStatus.COMPLETED.value
        project.completed_at = now
        project.updated_at = now

        order = await self._linked_order(db, project)
        if order is not None and can_advance_order(order.order_status, OrderStatus.COMPLETED):
            order.order_status = OrderStatus.COMPLETED.value
            order.photo_status = PhotoStatus.COMPLETED.value
            order.project_completed_date = now
            order.updated_at = now

        await db.flush()
        logger.info("Project %s marked complete", project.id)
        return ProjectResponse.model_validate(project)

    async def save_edit(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        canvas_data: Any = None,
        frame_color: Optional[str] = None,
        thumbnail_url: Optional[str] = None,
    ) -> SaveEditResponse:
        """
        Editor save: completes the project and its order, commits, then
        packs the exported strip into print templates.

        Raises:
            NotFoundError: unknown project
            ValidationError: the project has no photo yet
        """
        project = await self.get_project(db, project_id)
        if not project.photo_url:
            raise ValidationError(message="Please upload a photo first", field="photo_url")

        now = utcnow()
        project.canvas_data = canvas_data
        project.frame_color = frame_color
        project.thumbnail_url = thumbnail_url or project.thumbnail_url
        project.status = ProjectStatus.COMPLETED.value
        project.last_edited_at = now
        project.completed_at = now
        project.updated_at = now

        order = await self._linked_order(db, project)
        if order is not None and can_advance_order(order.order_status, OrderStatus.COMPLETED):
            order.order_status = OrderStatus.COMPLETED.value
            order.photo_status = PhotoStatus.COMPLETED.value
            order.project_completed_date = now
            order.updated_at = now

        await db.commit()
        saved = ProjectResponse.model_validate(project)
        logger.info("Project %s saved", project.id)

        customer_name = (order.customer_name if order is not None else None) or project.customer_name
        if order is None or not customer_name:
            return SaveEditResponse(project=saved)

        strip_url = project.thumbnail_url or project.photo_url
        try:
            slots = await template_allocator.allocate(
                db,
                order_id=order.id,
                project_id=project.id,
                photo_url=strip_url,
                student_name=customer_name,
                grade=order.grade,
                section=order.section,
                package_type=order.package_type,
            )
            allocated = [TemplateSlotResponse.model_validate(slot) for slot in slots]
            await db.commit()
        except (StripBoothError, SQLAlchemyError) as e:
            await db.rollback()
            message = e.message if isinstance(e, StripBoothError) else "Template insertion failed"
            logger.warning("Project %s saved but template insertion failed: %s", project.id, str(e))
            return SaveEditResponse(project=saved, template_error=message)

        return SaveEditResponse(project=saved, allocated_slots=allocated)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _linked_order(self, db: AsyncSession, project: Project) -> Optional[Order]:
        if project.order_id is None:
            return None
        return await db.get(Order, project.order_id)

    def _clean_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        changes = sanitize_payload(payload, PROJECT_COLUMNS)
        if "status" in changes:
            changes["status"] = parse_enum(ProjectStatus, changes["status"], "status").value
        for field in ("template_id", "order_id"):
            if field in changes:
                changes[field] = parse_uuid(changes[field], field) if changes[field] else None
        if "package_type" in changes:
            changes["package_type"] = parse_optional_int(changes["package_type"])
        coerce_datetime_fields(changes, PROJECT_DATETIME_FIELDS)
        return changes


# ── Singleton Instance ────────────────────────────────────────────────────
project_service = ProjectService()
