"""
StripBooth Backend — Status Enumeration Tests
==============================================
"""

import pytest

from stripbooth.exceptions import InvalidTransitionError, ValidationError
from stripbooth.lifecycle import (
    OPERATOR_TRANSITIONS,
    ORDER_TRANSITIONS,
    OrderStatus,
    ProjectStatus,
    TemplateStatus,
    can_advance_order,
    ensure_operator_transition,
    occupancy_status,
    parse_enum,
    parse_template_status,
    parse_template_statuses,
)


class TestTransitionTables:

    def test_every_template_status_has_operator_entry(self):
        assert set(OPERATOR_TRANSITIONS) == set(TemplateStatus)

    def test_every_order_status_has_entry(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)

    def test_delivered_is_terminal(self):
        assert ORDER_TRANSITIONS[OrderStatus.DELIVERED] == frozenset()


class TestTemplateStatusParsing:

    @pytest.mark.parametrize("raw", ["complete", "COMPLETE", "  Complete "])
    def test_parse_is_case_insensitive(self, raw):
        assert parse_template_status(raw) == TemplateStatus.COMPLETE

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_blank_is_none(self, raw):
        assert parse_template_status(raw) is None

    def test_unknown_raises(self):
        with pytest.raises(ValidationError, match="Invalid print template status"):
            parse_template_status("archived")

    def test_list_parse_drops_unknown(self):
        parsed = parse_template_statuses(["Filling", "archived", "", "printed"])
        assert parsed == [TemplateStatus.FILLING, TemplateStatus.PRINTED]


class TestOccupancy:

    @pytest.mark.parametrize("occupied,expected", [
        (0, TemplateStatus.FILLING),
        (5, TemplateStatus.FILLING),
        (6, TemplateStatus.COMPLETE),
        (7, TemplateStatus.COMPLETE),
    ])
    def test_status_follows_count(self, occupied, expected):
        assert occupancy_status(occupied, 6) == expected


class TestOperatorTransitions:

    def test_download_from_complete(self):
        assert ensure_operator_transition("complete", TemplateStatus.DOWNLOADED) == TemplateStatus.COMPLETE

    def test_print_from_downloaded(self):
        ensure_operator_transition("downloaded", TemplateStatus.PRINTED)

    @pytest.mark.parametrize("current,target", [
        ("filling", TemplateStatus.DOWNLOADED),
        ("complete", TemplateStatus.PRINTED),
        ("printed", TemplateStatus.PRINTED),
        ("printed", TemplateStatus.DOWNLOADED),
        ("downloaded", TemplateStatus.FILLING),
    ])
    def test_disallowed(self, current, target):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_operator_transition(current, target)
        assert exc_info.value.current == current
        assert exc_info.value.target == target.value


class TestOrderProgression:

    def test_resave_after_download_returns_to_completed(self):
        assert can_advance_order("to_print", OrderStatus.COMPLETED)

    def test_packed_orders_are_not_reopened(self):
        assert not can_advance_order("packed", OrderStatus.COMPLETED)

    def test_same_status_is_accepted(self):
        assert can_advance_order("completed", OrderStatus.COMPLETED)


class TestParseEnum:

    def test_valid_value(self):
        assert parse_enum(ProjectStatus, "in_progress", "status") == ProjectStatus.IN_PROGRESS

    def test_invalid_value_lists_allowed(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_enum(OrderStatus, "lost", "order_status")
        assert "pending" in exc_info.value.context["allowed"]
        assert exc_info.value.field == "order_status"
