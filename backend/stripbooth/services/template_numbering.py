"""
StripBooth Backend — Print Template Numbering
==============================================

What:  Issues year-scoped template numbers: TMPL-<year>-<4-digit seq>.
How:   One `template_sequences` row per calendar year holds the last issued
       value. Issuance runs inside the caller's transaction:
           1. pg_advisory_xact_lock(TEMPLATE_NUMBER_LOCK_KEY)
           2. if the year has no row, seed one from existing template
              numbers (INSERT ... ON CONFLICT DO NOTHING)
           3. UPDATE ... SET last_value = last_value + 1 RETURNING last_value
       The advisory lock is released at COMMIT/ROLLBACK, so two requests
       creating templates concurrently always get distinct numbers.
       SQLite has no advisory locks; step 1 is skipped and its single
       writer lock serialises steps 2 and 3.
Who:   TemplateAllocator (fetch-or-create) and PrintTemplateService.create.
"""

import logging
import re
from typing import Optional, Tuple

from sqlalchemy import select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from stripbooth.config import settings
from stripbooth.database import utcnow
from stripbooth.models.print_template import PrintTemplate, TemplateSequence

logger = logging.getLogger(__name__)


def format_template_number(year: int, sequence: int, prefix: Optional[str] = None) -> str:
    return f"{prefix or settings.template_number_prefix}-{year}-{sequence:04d}"


def parse_template_number(value: str, prefix: Optional[str] = None) -> Optional[Tuple[int, int]]:
    """Returns (year, sequence) for a well-formed number, else None."""
    pattern = rf"^{re.escape(prefix or settings.template_number_prefix)}-(\d{{4}})-(\d+)$"
    match = re.match(pattern, (value or "").strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


async def _max_existing_sequence(db: AsyncSession, year: int) -> int:
    """Highest suffix already used for `year`, from rows created before the counter existed."""
    like_pattern = f"{settings.template_number_prefix}-{year}-%"
    result = await db.execute(
        select(PrintTemplate.template_number).where(
            PrintTemplate.template_number.like(like_pattern)
        )
    )
    highest = 0
    for number in result.scalars():
        parsed = parse_template_number(number)
        if parsed and parsed[0] == year:
            highest = max(highest, parsed[1])
    return highest


def _insert_sequence(year: int, seed: int):
    """INSERT ... ON CONFLICT DO NOTHING for the year's counter row."""
    insert = sqlite_insert if settings.is_sqlite else pg_insert
    return (
        insert(TemplateSequence)
        .values(year=year, last_value=seed)
        .on_conflict_do_nothing(index_elements=["year"])
    )


async def next_template_number(db: AsyncSession, year: Optional[int] = None) -> str:
    """
    Reserves and returns the next template number for `year` (default: now).

    Must be called inside the transaction that inserts the template, so the
    lock covers the scan-then-insert window.
    """
    year = year or utcnow().year

    if not settings.is_sqlite:
        await db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"),
            {"key": settings.template_number_lock_key},
        )

    result = await db.execute(
        select(TemplateSequence.last_value).where(TemplateSequence.year == year)
    )
    if result.scalar_one_or_none() is None:
        seed = await _max_existing_sequence(db, year)
        await db.execute(_insert_sequence(year, seed))
        logger.info("Template sequence for %d seeded at %d", year, seed)

    result = await db.execute(
        update(TemplateSequence)
        .where(TemplateSequence.year == year)
        .values(last_value=TemplateSequence.last_value + 1)
        .returning(TemplateSequence.last_value)
        .execution_options(synchronize_session=False)
    )
    return format_template_number(year, result.scalar_one())


async def register_template_number(db: AsyncSession, template_number: str) -> None:
    """
    Advances the year's counter past an explicitly supplied number so later
    issued numbers cannot collide with it.

    A year without a counter row is left alone: its first issuance seeds
    from existing rows, which already include this one once it is flushed.
    """
    parsed = parse_template_number(template_number)
    if parsed is None:
        return
    year, value = parsed

    await db.execute(
        update(TemplateSequence)
        .where(TemplateSequence.year == year, TemplateSequence.last_value < value)
        .values(last_value=value)
        .execution_options(synchronize_session=False)
    )
