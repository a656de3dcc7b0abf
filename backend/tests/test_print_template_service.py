"""
StripBooth Backend — Print Template Service Tests
==================================================

What we test:
    ✅ status filters (case-insensitive, unknown values match nothing)
    ✅ manual creation with issued and explicit template numbers
    ✅ PATCH status routed through the lifecycle
    ✅ new sheets start filling; slots_used and total_slots follow the live slots
    ✅ bulk slot payload validation and last-wins de-duplication
    ✅ upsert / delete keep slots_used and status in step
    ✅ design template catalog
"""

from uuid import uuid4

import pytest

from stripbooth.database import utcnow
from stripbooth.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from stripbooth.models.print_template import PrintTemplate
from stripbooth.services.print_template_service import PrintTemplateService
from stripbooth.services.template_allocator import template_allocator


class TestTemplates:

    def setup_method(self):
        self.service = PrintTemplateService()

    @pytest.mark.asyncio
    async def test_create_issues_next_number(self, db_session):
        first = await self.service.create_template(db_session, {})
        second = await self.service.create_template(db_session, {"final_image_url": "x.png"})

        year = utcnow().year
        assert first.template_number == f"TMPL-{year}-0001"
        assert second.template_number == f"TMPL-{year}-0002"
        assert first.status == "filling"
        assert first.total_slots == 6

    @pytest.mark.asyncio
    async def test_explicit_number_advances_sequence(self, db_session):
        year = utcnow().year
        await self.service.create_template(db_session, {})

        await self.service.create_template(db_session, {"template_number": f"TMPL-{year}-0009"})
        issued = await self.service.create_template(db_session, {})

        assert issued.template_number == f"TMPL-{year}-0010"

    @pytest.mark.asyncio
    async def test_total_slots_range(self, db_session):
        with pytest.raises(ValidationError, match="total_slots must be between 1 and 6"):
            await self.service.create_template(db_session, {"total_slots": 0})
        with pytest.raises(ValidationError, match="total_slots must be between 1 and 6"):
            await self.service.create_template(db_session, {"total_slots": 7})

    @pytest.mark.asyncio
    async def test_status_filters(self, db_session):
        year = utcnow().year
        for number, status in ((1, "filling"), (2, "complete"), (3, "printed")):
            db_session.add(PrintTemplate(
                template_number=f"TMPL-{year}-{number:04d}",
                status=status,
                slots_used=0 if status == "filling" else 6,
                total_slots=6,
                created_at=utcnow(),
            ))
        await db_session.flush()

        complete = await self.service.list_templates(db_session, status="COMPLETE")
        either = await self.service.list_templates(db_session, statuses=["complete", "printed"])

        assert [t.status for t in complete] == ["complete"]
        assert {t.status for t in either} == {"complete", "printed"}
        assert await self.service.count_templates(db_session, statuses=["filling"]) == 1
        assert await self.service.count_templates(db_session) == 3

    @pytest.mark.asyncio
    async def test_unknown_status_filter_matches_nothing(self, db_session):
        await self.service.create_template(db_session, {})
        assert await self.service.list_templates(db_session, status="archived") == []
        assert await self.service.count_templates(db_session, statuses=["archived"]) == 0

    @pytest.mark.asyncio
    async def test_patch_status_uses_lifecycle(self, db_session):
        template = await self.service.create_template(db_session, {"status": "filling"})

        with pytest.raises(InvalidTransitionError):
            await self.service.update_template(db_session, template.id, {"status": "downloaded"})

    @pytest.mark.asyncio
    async def test_patch_plain_columns(self, db_session):
        template = await self.service.create_template(db_session, {})
        await self.service.bulk_upsert_slots(db_session, [
            {"template_id": str(template.id), "position": position} for position in range(1, 7)
        ])

        updated = await self.service.update_template(
            db_session, template.id, {"status": "downloaded", "final_image_url": "sheet.png"}
        )

        assert updated.status == "downloaded"
        assert updated.final_image_url == "sheet.png"
        assert updated.downloaded_at is not None


class TestTemplateStateGuards:
    """Client payloads cannot put a sheet into a state its slots contradict."""

    def setup_method(self):
        self.service = PrintTemplateService()

    async def _filled_by_four(self, db_session, make_order):
        order, project = await make_order(package_type=4)
        await template_allocator.allocate(
            db_session,
            order_id=order.id,
            project_id=project.id,
            photo_url="strip.png",
            student_name=order.customer_name,
            grade=order.grade,
            section=order.section,
            package_type=4,
        )
        (template,) = await self.service.list_templates(db_session)
        assert (template.status, template.slots_used) == ("filling", 4)
        return template

    @pytest.mark.asyncio
    async def test_unknown_status_rejected_on_create(self, db_session):
        with pytest.raises(ValidationError, match="Invalid print template status"):
            await self.service.create_template(db_session, {"status": "bogus"})
        assert await self.service.count_templates(db_session) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["complete", "downloaded", "printed"])
    async def test_new_template_must_start_filling(self, db_session, status):
        with pytest.raises(ValidationError, match="starts as 'filling'"):
            await self.service.create_template(db_session, {"status": status, "slots_used": 6})
        assert await self.service.count_templates(db_session) == 0

    @pytest.mark.asyncio
    async def test_slots_used_ignored_on_create(self, db_session):
        template = await self.service.create_template(db_session, {"slots_used": 6})
        assert template.slots_used == 0
        assert template.status == "filling"

    @pytest.mark.asyncio
    async def test_unknown_status_rejected_on_patch(self, db_session):
        template = await self.service.create_template(db_session, {})

        with pytest.raises(ValidationError, match="Invalid print template status"):
            await self.service.update_template(db_session, template.id, {"status": "bogus"})

        refreshed = await self.service.get_template(db_session, template.id)
        assert refreshed.status == "filling"

    @pytest.mark.asyncio
    async def test_total_slots_cannot_shrink_below_occupied(self, db_session, make_order):
        template = await self._filled_by_four(db_session, make_order)

        with pytest.raises(ValidationError, match="below occupied position 4"):
            await self.service.update_template(db_session, template.id, {"total_slots": 2})

        refreshed = await self.service.get_template(db_session, template.id)
        assert (refreshed.status, refreshed.slots_used, refreshed.total_slots) == ("filling", 4, 6)

    @pytest.mark.asyncio
    async def test_client_slots_used_is_ignored(self, db_session, make_order):
        template = await self._filled_by_four(db_session, make_order)

        updated = await self.service.update_template(
            db_session, template.id, {"slots_used": 0, "status": "filling"}
        )

        assert updated.slots_used == 4
        assert updated.status == "filling"

    @pytest.mark.asyncio
    async def test_shrinking_to_occupancy_completes_sheet(self, db_session, make_order):
        template = await self._filled_by_four(db_session, make_order)

        updated = await self.service.update_template(db_session, template.id, {"total_slots": 4})

        assert (updated.status, updated.slots_used, updated.total_slots) == ("complete", 4, 4)
        assert updated.completed_at is not None

    @pytest.mark.asyncio
    async def test_growing_complete_sheet_reopens_it(self, db_session):
        template = await self.service.create_template(db_session, {"total_slots": 2})
        await self.service.bulk_upsert_slots(db_session, [
            {"template_id": str(template.id), "position": position} for position in (1, 2)
        ])
        assert (await self.service.get_template(db_session, template.id)).status == "complete"

        updated = await self.service.update_template(db_session, template.id, {"total_slots": 6})

        assert (updated.status, updated.slots_used) == ("filling", 2)
        assert updated.completed_at is None

    @pytest.mark.asyncio
    async def test_upsert_beyond_sheet_capacity_rejected(self, db_session):
        template = await self.service.create_template(db_session, {"total_slots": 2})

        with pytest.raises(ValidationError, match="exceeds the 2 slots"):
            await self.service.bulk_upsert_slots(
                db_session, [{"template_id": str(template.id), "position": 3}]
            )

    @pytest.mark.asyncio
    async def test_upsert_to_missing_template_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.bulk_upsert_slots(db_session, [{"template_id": str(uuid4()), "position": 1}])


class TestSlotPayload:

    def setup_method(self):
        self.service = PrintTemplateService()

    def test_template_id_must_be_uuid(self):
        with pytest.raises(ValidationError) as exc_info:
            self.service.validate_slot_payload([
                {"template_id": str(uuid4()), "position": 1},
                {"template_id": "not-a-uuid", "position": 1},
            ])
        assert exc_info.value.message == "Invalid slot payload at index 1: template_id must be a UUID"

    @pytest.mark.parametrize("position", [0, 7, None, "x"])
    def test_position_range(self, position):
        with pytest.raises(ValidationError, match="position must be between 1 and 6"):
            self.service.validate_slot_payload([{"template_id": str(uuid4()), "position": position}])

    def test_last_entry_wins(self):
        template_id = str(uuid4())
        rows = self.service.validate_slot_payload([
            {"template_id": template_id, "position": 2, "student_name": "first"},
            {"template_id": template_id, "position": 3, "student_name": "other"},
            {"template_id": template_id, "position": "2", "student_name": "second"},
        ])

        assert len(rows) == 2
        by_position = {row["position"]: row for row in rows}
        assert by_position[2]["student_name"] == "second"

    def test_references_are_lenient(self):
        (row,) = self.service.validate_slot_payload([
            {"template_id": str(uuid4()), "position": 1, "order_id": "legacy-42", "project_id": ""},
        ])
        assert row["order_id"] is None
        assert row["project_id"] is None


class TestSlotWrites:

    def setup_method(self):
        self.service = PrintTemplateService()

    @pytest.mark.asyncio
    async def test_upsert_fills_and_completes_template(self, db_session):
        template = await self.service.create_template(db_session, {})
        payload = [
            {"template_id": str(template.id), "position": position, "student_name": f"S{position}"}
            for position in range(1, 7)
        ]

        saved = await self.service.bulk_upsert_slots(db_session, payload)

        assert len(saved) == 6
        refreshed = await self.service.get_template(db_session, template.id)
        assert refreshed.slots_used == 6
        assert refreshed.status == "complete"

    @pytest.mark.asyncio
    async def test_upsert_overwrites_existing_position(self, db_session):
        template = await self.service.create_template(db_session, {})
        (first,) = await self.service.bulk_upsert_slots(
            db_session, [{"template_id": str(template.id), "position": 1, "student_name": "Ana"}]
        )

        (second,) = await self.service.bulk_upsert_slots(
            db_session, [{"template_id": str(template.id), "position": 1, "student_name": "Ben"}]
        )

        assert second.id == first.id
        assert second.student_name == "Ben"
        slots = await self.service.list_slots(db_session, template_ids=[str(template.id)])
        assert len(slots) == 1

    @pytest.mark.asyncio
    async def test_delete_reopens_template(self, db_session):
        template = await self.service.create_template(db_session, {})
        saved = await self.service.bulk_upsert_slots(db_session, [
            {"template_id": str(template.id), "position": position} for position in range(1, 7)
        ])

        result = await self.service.delete_slots(db_session, [str(saved[0].id), str(saved[1].id)])

        assert result.deleted == 2
        assert result.template_ids == [template.id]
        refreshed = await self.service.get_template(db_session, template.id)
        assert refreshed.slots_used == 4
        assert refreshed.status == "filling"
        assert refreshed.completed_at is None

    @pytest.mark.asyncio
    async def test_delete_requires_ids(self, db_session):
        with pytest.raises(ValidationError, match="ids is required"):
            await self.service.delete_slots(db_session, [])

    @pytest.mark.asyncio
    async def test_list_slots_by_order(self, db_session, make_order):
        order, _ = await make_order()
        template = await self.service.create_template(db_session, {})
        await self.service.bulk_upsert_slots(db_session, [
            {"template_id": str(template.id), "position": 2, "order_id": str(order.id)},
            {"template_id": str(template.id), "position": 1, "order_id": str(order.id)},
            {"template_id": str(template.id), "position": 3},
        ])

        slots = await self.service.list_slots(db_session, order_ids=[str(order.id)])

        assert [slot.position for slot in slots] == [1, 2]


class TestDesignTemplates:

    def setup_method(self):
        self.service = PrintTemplateService()

    @pytest.mark.asyncio
    async def test_create_and_list(self, db_session):
        await self.service.create_design_template(db_session, {"name": " Sunflower ", "preview_url": "sun.png"})

        (design,) = await self.service.list_design_templates(db_session)

        assert design.name == "Sunflower"
        assert design.preview_url == "sun.png"

    @pytest.mark.asyncio
    async def test_name_required(self, db_session):
        with pytest.raises(ValidationError):
            await self.service.create_design_template(db_session, {"preview_url": "x.png"})
