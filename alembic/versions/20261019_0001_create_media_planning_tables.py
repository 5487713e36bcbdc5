"""create media planning reference and game plan tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _named_table(table_name: str, *, length: int = 120) -> None:
    op.create_table(
        table_name,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=length), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name=f"uq_{table_name}_name"),
    )


def upgrade() -> None:
    op.create_table(
        "countries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column(
            "sub_region",
            sa.String(length=120),
            nullable=True,
            comment="Planning sub-region the country rolls up to",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_countries_name"),
    )
    _named_table("categories")
    _named_table("media_types")
    _named_table("business_units")
    _named_table("pm_types")
    op.create_table(
        "financial_cycles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "name",
            sa.String(length=120),
            nullable=False,
            comment="Planning period label, e.g. 'FC05 2025'",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_financial_cycles_name"),
    )

    op.create_table(
        "media_sub_types",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("media_type_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["media_type_id"], ["media_types.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "media_type_id", name="uq_media_sub_types_name_media_type_id"),
    )
    op.create_index("ix_media_sub_types_media_type_id", "media_sub_types", ["media_type_id"], unique=False)

    op.create_table(
        "ranges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, comment="active, pending_review"),
        sa.Column("created_by", sa.String(length=120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_ranges_name"),
    )
    op.create_index("ix_ranges_category_id", "ranges", ["category_id"], unique=False)

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("range_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, comment="active, pending_review"),
        sa.Column("created_by", sa.String(length=120), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["range_id"], ["ranges.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "range_id", name="uq_campaigns_name_range_id"),
    )
    op.create_index("ix_campaigns_name", "campaigns", ["name"], unique=False)
    op.create_index("ix_campaigns_status", "campaigns", ["status"], unique=False)

    op.create_table(
        "game_plans",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("media_sub_type_id", sa.Integer(), nullable=False),
        sa.Column("country_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("range_id", sa.Integer(), nullable=True),
        sa.Column("business_unit_id", sa.Integer(), nullable=True),
        sa.Column("pm_type_id", sa.Integer(), nullable=True),
        sa.Column("financial_cycle_id", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("burst", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("total_budget", sa.Float(), nullable=False),
        sa.Column("q1_budget", sa.Float(), nullable=True),
        sa.Column("q2_budget", sa.Float(), nullable=True),
        sa.Column("q3_budget", sa.Float(), nullable=True),
        sa.Column("q4_budget", sa.Float(), nullable=True),
        sa.Column("target_reach", sa.Float(), nullable=True, comment="Fraction between 0 and 1"),
        sa.Column("current_reach", sa.Float(), nullable=True, comment="Fraction between 0 and 1"),
        sa.Column("digital_same_as_tv", sa.String(length=32), nullable=True),
        sa.Column("campaign_status", sa.String(length=64), nullable=True),
        sa.Column("campaign_type", sa.String(length=64), nullable=True),
        sa.Column("campaign_priority", sa.String(length=64), nullable=True),
        sa.Column("last_modified_by", sa.String(length=120), nullable=True),
        sa.Column(
            "import_session_id",
            sa.String(length=64),
            nullable=True,
            comment="Import session that last wrote this row",
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["media_sub_type_id"], ["media_sub_types.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["country_id"], ["countries.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["range_id"], ["ranges.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["business_unit_id"], ["business_units.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["pm_type_id"], ["pm_types.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["financial_cycle_id"], ["financial_cycles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_game_plans_natural_key",
        "game_plans",
        [
            "campaign_id",
            "media_sub_type_id",
            "country_id",
            "financial_cycle_id",
            "year",
            "burst",
            "start_date",
        ],
        unique=False,
    )
    op.create_index(
        "ix_game_plans_scope",
        "game_plans",
        ["country_id", "financial_cycle_id", "business_unit_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_game_plans_scope", table_name="game_plans")
    op.drop_index("ix_game_plans_natural_key", table_name="game_plans")
    op.drop_table("game_plans")
    op.drop_index("ix_campaigns_status", table_name="campaigns")
    op.drop_index("ix_campaigns_name", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index("ix_ranges_category_id", table_name="ranges")
    op.drop_table("ranges")
    op.drop_index("ix_media_sub_types_media_type_id", table_name="media_sub_types")
    op.drop_table("media_sub_types")
    for table_name in ("financial_cycles", "pm_types", "business_units", "media_types", "categories", "countries"):
        op.drop_table(table_name)
