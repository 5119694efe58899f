"""Initial attribution schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_ENUM = sa.String(length=32)


def upgrade() -> None:
    op.create_table(
        "contact",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("primary_email", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("source_ids", sa.Text(), nullable=False),
        sa.Column("emails", sa.Text(), nullable=False),
        sa.Column("field_values", sa.Text(), nullable=False),
        sa.Column("event_kinds", sa.Text(), nullable=False),
        sa.Column("match_methods", sa.Text(), nullable=False),
        sa.Column("field_coverage", sa.Float(), nullable=False),
        sa.Column("match_confidence", _ENUM, nullable=False),
        sa.Column("merged_into", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["merged_into"], ["contact.id"], name="fk_contact_merged_into_contact"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_contact"),
    )
    op.create_table(
        "touchpoint",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("source", _ENUM, nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("type", _ENUM, nullable=False),
        sa.Column("family", _ENUM, nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["contact_id"], ["contact.id"], name="fk_touchpoint_contact_id_contact"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_touchpoint"),
        sa.UniqueConstraint("source", "external_id", name="uq_touchpoint_source_external_id"),
    )
    op.create_index("ix_touchpoint_contact_family", "touchpoint", ["contact_id", "family"])
    op.create_table(
        "deal",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("source", _ENUM, nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("pipeline", sa.String(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("currency", sa.String(), nullable=True),
        sa.Column("stage", sa.String(), nullable=True),
        sa.Column("owner", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["contact_id"], ["contact.id"], name="fk_deal_contact_id_contact"),
        sa.PrimaryKeyConstraint("id", name="pk_deal"),
        sa.UniqueConstraint("source", "external_id", name="uq_deal_source_external_id"),
    )
    op.create_index("ix_deal_contact_id", "deal", ["contact_id"])
    op.create_table(
        "attribution_record",
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.Column("first_touch_id", sa.Integer(), nullable=True),
        sa.Column("last_touch_id", sa.Integer(), nullable=True),
        sa.Column("credit_distribution", sa.Text(), nullable=False),
        sa.Column("converted", sa.Boolean(), nullable=False),
        sa.Column("days_to_conversion", sa.Integer(), nullable=True),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("computed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["contact_id"], ["contact.id"], name="fk_attribution_record_contact_id_contact"
        ),
        sa.PrimaryKeyConstraint("contact_id", name="pk_attribution_record"),
    )
    op.create_table(
        "sync_checkpoint",
        sa.Column("source", _ENUM, nullable=False),
        sa.Column("cursor", sa.String(), nullable=True),
        sa.Column("page_offset", sa.Integer(), nullable=False),
        sa.Column("processed_count", sa.Integer(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=True),
        sa.Column("status", _ENUM, nullable=False),
        sa.Column("resume_token_id", sa.String(), nullable=True),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("source", name="pk_sync_checkpoint"),
    )
    op.create_table(
        "contact_source_index",
        sa.Column("source", _ENUM, nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["contact_id"], ["contact.id"], name="fk_contact_source_index_contact_id_contact"
        ),
        sa.PrimaryKeyConstraint("source", "external_id", name="pk_contact_source_index"),
    )
    op.create_index(
        "ix_contact_source_index_contact_id", "contact_source_index", ["contact_id"]
    )
    op.create_table(
        "contact_email_index",
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["contact_id"], ["contact.id"], name="fk_contact_email_index_contact_id_contact"
        ),
        sa.PrimaryKeyConstraint("email", "contact_id", name="pk_contact_email_index"),
    )
    op.create_table(
        "contact_attribute_index",
        sa.Column("field", sa.String(), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.Column("contact_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["contact_id"],
            ["contact.id"],
            name="fk_contact_attribute_index_contact_id_contact",
        ),
        sa.PrimaryKeyConstraint("field", "value", "contact_id", name="pk_contact_attribute_index"),
    )
    op.create_table(
        "raw_event",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source", _ENUM, nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=False),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_raw_event"),
        sa.UniqueConstraint(
            "source",
            "external_id",
            "observed_at",
            name="uq_raw_event_source_external_id_observed",
        ),
    )


def downgrade() -> None:
    op.drop_table("raw_event")
    op.drop_table("contact_attribute_index")
    op.drop_table("contact_email_index")
    op.drop_index("ix_contact_source_index_contact_id", table_name="contact_source_index")
    op.drop_table("contact_source_index")
    op.drop_table("sync_checkpoint")
    op.drop_table("attribution_record")
    op.drop_index("ix_deal_contact_id", table_name="deal")
    op.drop_table("deal")
    op.drop_index("ix_touchpoint_contact_family", table_name="touchpoint")
    op.drop_table("touchpoint")
    op.drop_table("contact")
