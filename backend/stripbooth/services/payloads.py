"""
StripBooth Backend — Payload Sanitising & Query Helpers
========================================================

What:  Allow-listed column sets per table, plus the small parsers shared by
       every service (comma lists, UUIDs, integers, ORDER BY resolution).
How:   Services pass raw dicts through `sanitize_payload` before touching
       the ORM, so unknown keys from a client are silently dropped.
Who:   OrderService, ProjectService, PrintTemplateService, RaffleService.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import asc, desc

from stripbooth.exceptions import ValidationError


# ── Writable Columns ──────────────────────────────────────────────────────
# Columns a client may set through create/patch payloads. `id` is never
# client-writable, nor is print_templates.slots_used (derived from live slots).
ORDER_COLUMNS: FrozenSet[str] = frozenset({
    "customer_name", "grade", "section", "package_type", "design_type",
    "standard_design_id", "included_raffles", "additional_raffles",
    "total_raffles", "raffle_cost", "package_base_cost", "total_amount",
    "payment_method", "gcash_reference", "order_status", "photo_status",
    "order_date", "photo_uploaded_date", "project_completed_date",
    "packed_date", "delivery_date", "delivery_recipient", "delivery_notes",
})

PROJECT_COLUMNS: FrozenSet[str] = frozenset({
    "name", "template_id", "photo_url", "canvas_data", "frame_color",
    "order_id", "customer_name", "grade", "section", "package_type",
    "design_type", "status", "thumbnail_url", "photo_uploaded_at",
    "last_edited_at", "completed_at",
})

DESIGN_TEMPLATE_COLUMNS: FrozenSet[str] = frozenset({"name", "preview_url"})

PRINT_TEMPLATE_COLUMNS: FrozenSet[str] = frozenset({
    "template_number", "status", "total_slots",
    "final_image_url", "completed_at", "downloaded_at", "printed_at",
})

TEMPLATE_SLOT_COLUMNS: FrozenSet[str] = frozenset({
    "template_id", "position", "order_id", "project_id", "photo_url",
    "student_name", "grade", "section", "package_type",
})

RAFFLE_ENTRY_COLUMNS: FrozenSet[str] = frozenset({
    "order_id", "customer_name", "grade", "section", "raffle_number",
})

# ── Orderable Columns ─────────────────────────────────────────────────────
ORDERABLE_COLUMNS: Dict[str, FrozenSet[str]] = {
    "projects": frozenset({"created_at", "updated_at", "photo_uploaded_at", "last_edited_at"}),
    "orders": frozenset({"created_at", "updated_at", "order_date", "packed_date"}),
    "templates": frozenset({"created_at"}),
    "print_templates": frozenset({"created_at", "downloaded_at", "printed_at"}),
    "template_slots": frozenset({"position", "inserted_at"}),
    "raffle_entries": frozenset({"created_at", "raffle_number"}),
    "raffle_winners": frozenset({"won_at"}),
}


def sanitize_payload(payload: Optional[Dict[str, Any]], allowed: Iterable[str]) -> Dict[str, Any]:
    """Keeps only allow-listed keys; unknown keys are dropped without error."""
    allowed_set = frozenset(allowed)
    return {key: value for key, value in (payload or {}).items() if key in allowed_set}


def parse_list(value: Optional[str]) -> List[str]:
    """Splits a comma-separated query value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in str(value).split(",") if item.strip()]


def parse_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(
            message=f"{field} must be a UUID",
            field=field,
            context={"value": str(value)},
        )


def parse_optional_uuid(value: Any) -> Optional[uuid.UUID]:
    """Lenient variant for nullable references: anything that isn't a UUID becomes None."""
    if not value:
        return None
    try:
        return parse_uuid(value, "id")
    except ValidationError:
        return None


def parse_uuid_list(values: Iterable[Any], field: str) -> List[uuid.UUID]:
    return [parse_uuid(value, field) for value in values]


def parse_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def resolve_ordering(
    model,
    table: str,
    order_by: Optional[str],
    order_dir: Optional[str],
    default: str,
    default_dir: str = "desc",
):
    """
    Builds an ORDER BY clause from client input.

    Unlisted columns fall back to `default`; a missing direction uses
    `default_dir`, and anything other than 'asc' sorts descending.
    """
    allowed = ORDERABLE_COLUMNS.get(table, frozenset())
    column_name = order_by if order_by in allowed else default
    column = getattr(model, column_name)
    return asc(column) if (order_dir or default_dir).lower() == "asc" else desc(column)


def parse_datetime(value: Any, field: str) -> Optional[datetime]:
    """Accepts datetimes or ISO 8601 strings (a trailing 'Z' means UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(
                message=f"{field} must be an ISO 8601 datetime",
                field=field,
                context={"value": str(value)},
            )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_datetime_fields(payload: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    for field in fields:
        if field in payload:
            payload[field] = parse_datetime(payload[field], field)
    return payload
