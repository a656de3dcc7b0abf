"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2024-05-20 00:00:00.000000+00:00

What:  Creates every table of the booth: orders, projects, templates
       (design catalog), print_templates, template_slots,
       template_sequences, raffle_entries and raffle_winners.
How:   Constraints mirror the ORM models: unique template numbers, unique
       (template_id, position) with position in 1..6, unique
       (order_id, raffle_number) and one winner row per entry.

Rollback: downgrade() drops all tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("grade", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("section", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("package_type", sa.Integer(), nullable=False, server_default=sa.text("2")),
        sa.Column("design_type", sa.String(20), nullable=False, server_default=sa.text("'standard'")),
        sa.Column("standard_design_id", sa.Uuid(), nullable=True),
        sa.Column("included_raffles", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("additional_raffles", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_raffles", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("raffle_cost", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("package_base_cost", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default=sa.text("'cash'")),
        sa.Column("gcash_reference", sa.String(100), nullable=True),
        sa.Column("order_status", sa.String(30), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("photo_status", sa.String(30), nullable=False, server_default=sa.text("'pending'")),
        _timestamp("order_date", nullable=False),
        _timestamp("photo_uploaded_date"),
        _timestamp("project_completed_date"),
        _timestamp("packed_date"),
        _timestamp("delivery_date"),
        sa.Column("delivery_recipient", sa.String(200), nullable=True),
        sa.Column("delivery_notes", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_orders_order_status", "orders", ["order_status"])
    op.create_index("idx_orders_order_date", "orders", ["order_date"])

    op.create_table(
        "templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("preview_url", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=True),
        sa.Column("order_id", sa.Uuid(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("canvas_data", sa.JSON(), nullable=True),
        sa.Column("frame_color", sa.String(20), nullable=True),
        sa.Column("customer_name", sa.String(200), nullable=True),
        sa.Column("grade", sa.String(50), nullable=True),
        sa.Column("section", sa.String(50), nullable=True),
        sa.Column("package_type", sa.Integer(), nullable=True),
        sa.Column("design_type", sa.String(20), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default=sa.text("'awaiting_photo'")),
        _timestamp("photo_uploaded_at"),
        _timestamp("last_edited_at"),
        _timestamp("completed_at"),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at", nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["templates.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_projects_order_id", "projects", ["order_id"])
    op.create_index("idx_projects_status", "projects", ["status"])

    op.create_table(
        "print_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("template_number", sa.String(40), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'filling'")),
        sa.Column("slots_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_slots", sa.Integer(), nullable=False, server_default=sa.text("6")),
        sa.Column("final_image_url", sa.Text(), nullable=True),
        _timestamp("created_at", nullable=False),
        _timestamp("completed_at"),
        _timestamp("downloaded_at"),
        _timestamp("printed_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("template_number"),
    )
    op.create_index("idx_print_templates_status_created", "print_templates", ["status", "created_at"])

    op.create_table(
        "template_slots",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("template_id", sa.Uuid(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=True),
        sa.Column("project_id", sa.Uuid(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("student_name", sa.String(200), nullable=True),
        sa.Column("grade", sa.String(50), nullable=True),
        sa.Column("section", sa.String(50), nullable=True),
        sa.Column("package_type", sa.Integer(), nullable=True),
        _timestamp("inserted_at", nullable=False),
        sa.ForeignKeyConstraint(["template_id"], ["print_templates.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("template_id", "position", name="uq_template_slots_template_position"),
        sa.CheckConstraint("position >= 1 AND position <= 6", name="ck_template_slots_position"),
    )
    op.create_index("idx_template_slots_order_id", "template_slots", ["order_id"])

    op.create_table(
        "template_sequences",
        sa.Column("year", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("year"),
    )

    op.create_table(
        "raffle_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("grade", sa.String(50), nullable=True),
        sa.Column("section", sa.String(50), nullable=True),
        sa.Column("raffle_number", sa.Integer(), nullable=False),
        sa.Column("is_winner", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("won_at"),
        _timestamp("created_at", nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "raffle_number", name="uq_raffle_entries_order_number"),
    )
    op.create_index("idx_raffle_entries_is_winner", "raffle_entries", ["is_winner"])

    op.create_table(
        "raffle_winners",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entry_id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("grade", sa.String(50), nullable=True),
        sa.Column("section", sa.String(50), nullable=True),
        _timestamp("won_at", nullable=False),
        sa.Column("prize_details", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["entry_id"], ["raffle_entries.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entry_id"),
    )


def downgrade() -> None:
    op.drop_table("raffle_winners")
    op.drop_index("idx_raffle_entries_is_winner", table_name="raffle_entries")
    op.drop_table("raffle_entries")
    op.drop_table("template_sequences")
    op.drop_index("idx_template_slots_order_id", table_name="template_slots")
    op.drop_table("template_slots")
    op.drop_index("idx_print_templates_status_created", table_name="print_templates")
    op.drop_table("print_templates")
    op.drop_index("idx_projects_status", table_name="projects")
    op.drop_index("idx_projects_order_id", table_name="projects")
    op.drop_table("projects")
    op.drop_table("templates")
    op.drop_index("idx_orders_order_date", table_name="orders")
    op.drop_index("idx_orders_order_status", table_name="orders")
    op.drop_table("orders")
