"""booking core: catalog, bookings, comments, sequences + append-only comment triggers

Revision ID: 0001_booking_core
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_booking_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- catalog ---
    op.create_table(
        "assistance_types",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("list_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allow_photo_upload", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allow_schedule", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("capacity", sa.Integer(), nullable=True),  # NULL = unlimited
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_assistance_types_is_active", "assistance_types", ["is_active"])
    op.create_index("ix_assistance_types_list_order", "assistance_types", ["list_order"])

    op.create_table(
        "assistance_templates",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("assistance_type_id", sa.Text(), sa.ForeignKey("assistance_types.id"), nullable=False),
        sa.Column("additional_info", sa.Text(), nullable=False, server_default=""),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("selected_days_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("time_range_preset", sa.Text(), nullable=True),
        sa.Column("start_time", sa.Text(), nullable=True),
        sa.Column("end_time", sa.Text(), nullable=True),
        sa.Column("slots", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_active", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("list_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_assistance_templates_assistance_type_id", "assistance_templates", ["assistance_type_id"])
    op.create_index("ix_assistance_templates_is_active", "assistance_templates", ["is_active"])

    op.create_table(
        "featured_toons",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("character_class", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
    )
    op.create_index("ix_featured_toons_character_class", "featured_toons", ["character_class"])

    # --- bookings ---
    op.create_table(
        "bookings",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("request_number", sa.Text(), nullable=False),
        sa.Column("character_id", sa.Text(), nullable=False),
        sa.Column("contact_info", sa.Text(), nullable=False),
        sa.Column("assistance_type_id", sa.Text(), sa.ForeignKey("assistance_types.id"), nullable=False),
        sa.Column("assistance_type_name", sa.Text(), nullable=True),
        sa.Column("additional_info", sa.Text(), nullable=False),
        sa.Column("photo_urls_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("selected_days_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("time_range_preset", sa.Text(), nullable=True),
        sa.Column("start_time", sa.Text(), nullable=True),
        sa.Column("end_time", sa.Text(), nullable=True),
        sa.Column("slots", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("willing_to_donate", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.Text(), nullable=False),  # pending|confirmed|completed|cancelled
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.Text(), nullable=False),
        sa.CheckConstraint("slots >= 1", name="ck_bookings_slots_positive"),
    )
    op.create_index("ix_bookings_request_number", "bookings", ["request_number"], unique=True)
    op.create_index("ix_bookings_character_id", "bookings", ["character_id"])
    op.create_index("ix_bookings_assistance_type_id", "bookings", ["assistance_type_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])

    op.create_table(
        "sequences",
        sa.Column("name", sa.Text(), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )

    # --- comments (append-only) ---
    op.create_table(
        "comments",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("booking_id", sa.Text(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_admin", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("author_name", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.Text(), nullable=False),
    )
    op.create_index("uq_comments_booking_id_seq", "comments", ["booking_id", "seq"], unique=True)
    op.create_index("ix_comments_booking_id", "comments", ["booking_id"])
    op.create_index("ix_comments_is_read", "comments", ["is_read"])

    # content and authorship never change; only is_read may flip 0 -> 1
    op.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_comments_append_only
        BEFORE UPDATE ON comments
        WHEN NEW.content IS NOT OLD.content
          OR NEW.is_admin IS NOT OLD.is_admin
          OR NEW.author_name IS NOT OLD.author_name
          OR NEW.seq IS NOT OLD.seq
          OR NEW.booking_id IS NOT OLD.booking_id
          OR (OLD.is_read = 1 AND NEW.is_read = 0)
        BEGIN
          SELECT RAISE(ABORT, 'append-only: comments cannot be edited');
        END;
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_comments_append_only;")
    op.drop_table("comments")
    op.drop_table("sequences")
    op.drop_table("bookings")
    op.drop_table("featured_toons")
    op.drop_table("assistance_templates")
    op.drop_table("assistance_types")
