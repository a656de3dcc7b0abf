"""
StripBooth Backend — Status Enumerations & Transition Tables
=============================================================

What:  Closed sets of status values for orders, projects, photos and
       print templates, plus the transitions each one allows.
How:   `str` enums so values serialise and compare as plain strings in
       SQL and JSON. Every enum member has an entry in its transition
       table; `tests/test_lifecycle.py` asserts that coverage.
Who:   Services consult these before writing a status column.

Print template lifecycle:
    filling ──(allocator fills last slot)──▶ complete
    complete ──(allocator reconciles away a slot)──▶ filling
    complete ──(operator downloads sheet)──▶ downloaded
    downloaded ──(operator confirms print)──▶ printed

Order lifecycle:
    pending → photo_uploaded → completed → to_print → packed → delivered
"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional

from stripbooth.exceptions import InvalidTransitionError, ValidationError


class TemplateStatus(str, Enum):
    FILLING = "filling"
    COMPLETE = "complete"
    DOWNLOADED = "downloaded"
    PRINTED = "printed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PHOTO_UPLOADED = "photo_uploaded"
    COMPLETED = "completed"
    TO_PRINT = "to_print"
    PACKED = "packed"
    DELIVERED = "delivered"


class PhotoStatus(str, Enum):
    PENDING = "pending"
    UPLOADED = "uploaded"
    COMPLETED = "completed"


class ProjectStatus(str, Enum):
    AWAITING_PHOTO = "awaiting_photo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Templates still being packed; the allocator only reuses or fills these.
ACTIVE_TEMPLATE_STATUSES: FrozenSet[TemplateStatus] = frozenset(
    {TemplateStatus.FILLING, TemplateStatus.COMPLETE}
)

# Transitions an operator may request from the cashier screens.
OPERATOR_TRANSITIONS: Dict[TemplateStatus, FrozenSet[TemplateStatus]] = {
    TemplateStatus.FILLING: frozenset(),
    TemplateStatus.COMPLETE: frozenset({TemplateStatus.DOWNLOADED}),
    TemplateStatus.DOWNLOADED: frozenset({TemplateStatus.PRINTED}),
    TemplateStatus.PRINTED: frozenset(),
}

# Forward order progression. Re-saving an edited photo sets `completed`
# again, and cascades may re-apply the current state, so self-transitions
# are accepted by `can_advance_order`.
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PHOTO_UPLOADED, OrderStatus.COMPLETED}),
    OrderStatus.PHOTO_UPLOADED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.PHOTO_UPLOADED, OrderStatus.TO_PRINT}),
    OrderStatus.TO_PRINT: frozenset({OrderStatus.COMPLETED, OrderStatus.PACKED}),
    OrderStatus.PACKED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}


def parse_template_status(value: Optional[str]) -> Optional[TemplateStatus]:
    """Case-insensitive parse; None for blank input, ValidationError for unknown values."""
    if value is None:
        return None
    normalized = str(value).strip().lower()
    if not normalized:
        return None
    try:
        return TemplateStatus(normalized)
    except ValueError:
        raise ValidationError(
            message=f"Invalid print template status '{value}'",
            field="status",
            context={"allowed": [s.value for s in TemplateStatus]},
        )


def parse_template_statuses(values: Iterable[str]) -> list:
    """Parses a list of statuses, silently dropping blank or unknown entries."""
    parsed = []
    for value in values:
        try:
            status = parse_template_status(value)
        except ValidationError:
            continue
        if status is not None:
            parsed.append(status)
    return parsed


def parse_enum(enum_cls, value, field: str):
    """Coerces a raw string into `enum_cls`, raising ValidationError on failure."""
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            message=f"Invalid {field} '{value}'",
            field=field,
            context={"allowed": [member.value for member in enum_cls]},
        )


def occupancy_status(occupied: int, total_slots: int) -> TemplateStatus:
    """Status a packing-stage template must have for its live slot count."""
    return TemplateStatus.COMPLETE if occupied >= total_slots else TemplateStatus.FILLING


def ensure_operator_transition(current: str, target: TemplateStatus) -> TemplateStatus:
    current_status = TemplateStatus(current)
    if target not in OPERATOR_TRANSITIONS[current_status]:
        raise InvalidTransitionError("print template", current_status.value, target.value)
    return current_status


def can_advance_order(current: str, target: OrderStatus) -> bool:
    try:
        current_status = OrderStatus(current)
    except ValueError:
        return True
    return target == current_status or target in ORDER_TRANSITIONS[current_status]
