"""
StripBooth Backend — Project Service Tests
===========================================

What we test:
    ✅ project CRUD and payload cleaning
    ✅ attaching a photo moves project and order forward
    ✅ editor save completes the project and allocates the strip
    ✅ an allocation failure keeps the save and reports template_error
    ✅ manual completion never reopens packed orders
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from stripbooth.exceptions import DatabaseError, NotFoundError, ValidationError
from stripbooth.models.order import Order
from stripbooth.models.print_template import TemplateSlot
from stripbooth.models.project import Project
from stripbooth.services.project_service import ProjectService
from stripbooth.services.template_allocator import template_allocator


class TestProjectCrud:

    def setup_method(self):
        self.service = ProjectService()

    @pytest.mark.asyncio
    async def test_create_defaults_to_awaiting_photo(self, db_session):
        project = await self.service.create_project(db_session, {"name": " Walk-in ", "bogus": True})
        assert project.name == "Walk-in"
        assert project.status == "awaiting_photo"

    @pytest.mark.asyncio
    async def test_create_requires_name(self, db_session):
        with pytest.raises(ValidationError, match="name is required"):
            await self.service.create_project(db_session, {"name": "  "})

    @pytest.mark.asyncio
    async def test_update_validates_status(self, db_session, make_order):
        _, project = await make_order()
        with pytest.raises(ValidationError):
            await self.service.update_project(db_session, project.id, {"status": "archived"})

    @pytest.mark.asyncio
    async def test_update_rejects_bad_reference(self, db_session, make_order):
        _, project = await make_order()
        with pytest.raises(ValidationError, match="order_id must be a UUID"):
            await self.service.update_project(db_session, project.id, {"order_id": "42"})

    @pytest.mark.asyncio
    async def test_delete(self, db_session, make_order):
        _, project = await make_order()

        result = await self.service.delete_project(db_session, project.id)

        assert result.id == project.id
        with pytest.raises(NotFoundError):
            await self.service.get_project(db_session, project.id)


class TestAttachPhoto:

    def setup_method(self):
        self.service = ProjectService()

    @pytest.mark.asyncio
    async def test_photo_moves_project_and_order(self, db_session, make_order):
        order, project = await make_order()

        updated = await self.service.attach_photo(db_session, project.id, "project-images/p/original.jpg")

        assert updated.status == "in_progress"
        assert updated.photo_url == "project-images/p/original.jpg"
        assert updated.photo_uploaded_at is not None
        assert order.order_status == "photo_uploaded"
        assert order.photo_status == "uploaded"

    @pytest.mark.asyncio
    async def test_reupload_does_not_reopen_packed_order(self, db_session, make_order):
        order, project = await make_order(order_status="packed")

        await self.service.attach_photo(db_session, project.id, "again.jpg")

        assert order.order_status == "packed"


class TestSaveEdit:

    def setup_method(self):
        self.service = ProjectService()

    @pytest.mark.asyncio
    async def test_save_requires_photo(self, db_session, make_order):
        _, project = await make_order()
        with pytest.raises(ValidationError, match="upload a photo first"):
            await self.service.save_edit(db_session, project.id, canvas_data={})

    @pytest.mark.asyncio
    async def test_save_completes_and_allocates(self, db_session, make_order):
        order, project = await make_order(package_type=4, photo_url="original.jpg")

        result = await self.service.save_edit(
            db_session,
            project.id,
            canvas_data={"elements": [], "imageTransform": {"scale": 1.2}},
            frame_color="#ffcc00",
            thumbnail_url="edited.png",
        )

        assert result.template_error is None
        assert result.project.status == "completed"
        assert result.project.frame_color == "#ffcc00"
        assert result.project.canvas_data["imageTransform"]["scale"] == 1.2
        assert len(result.allocated_slots) == 4
        assert {slot.photo_url for slot in result.allocated_slots} == {"edited.png"}
        assert {slot.project_id for slot in result.allocated_slots} == {project.id}
        assert order.order_status == "completed"
        assert order.project_completed_date is not None

    @pytest.mark.asyncio
    async def test_resave_keeps_slot_count(self, db_session, make_order):
        _, project = await make_order(package_type=2, photo_url="original.jpg")

        await self.service.save_edit(db_session, project.id, thumbnail_url="v1.png")
        await self.service.save_edit(db_session, project.id, thumbnail_url="v2.png")

        slots = (await db_session.execute(select(TemplateSlot))).scalars().all()
        assert len(slots) == 2
        assert {slot.photo_url for slot in slots} == {"v2.png"}

    @pytest.mark.asyncio
    async def test_project_without_order_skips_allocation(self, db_session):
        created = await self.service.create_project(db_session, {"name": "Walk-in", "photo_url": "a.jpg"})

        result = await self.service.save_edit(db_session, created.id)

        assert result.project.status == "completed"
        assert result.allocated_slots == []
        assert result.template_error is None

    @pytest.mark.asyncio
    async def test_allocation_failure_keeps_save(self, db_session, session_factory, make_order):
        order, project = await make_order(photo_url="original.jpg")
        failure = DatabaseError(message="Could not place the photo strip into a print template.")

        with patch.object(template_allocator, "allocate", AsyncMock(side_effect=failure)):
            result = await self.service.save_edit(db_session, project.id, thumbnail_url="edited.png")

        assert result.project.status == "completed"
        assert result.allocated_slots == []
        assert result.template_error == "Could not place the photo strip into a print template."

        async with session_factory() as fresh:
            stored = await fresh.get(Project, project.id)
            stored_order = await fresh.get(Order, order.id)
            slot_count = await fresh.scalar(select(func.count(TemplateSlot.id)))
        assert stored.status == "completed"
        assert stored.thumbnail_url == "edited.png"
        assert stored_order.order_status == "completed"
        assert slot_count == 0

    @pytest.mark.asyncio
    async def test_unknown_project(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.save_edit(db_session, uuid4())


class TestMarkComplete:

    def setup_method(self):
        self.service = ProjectService()

    @pytest.mark.asyncio
    async def test_marks_project_and_order(self, db_session, make_order):
        order, project = await make_order(order_status="photo_uploaded")

        result = await self.service.mark_complete(db_session, project.id)

        assert result.status == "completed"
        assert result.completed_at is not None
        assert order.order_status == "completed"

    @pytest.mark.asyncio
    async def test_packed_order_untouched(self, db_session, make_order):
        order, project = await make_order(order_status="packed")

        await self.service.mark_complete(db_session, project.id)

        assert order.order_status == "packed"
