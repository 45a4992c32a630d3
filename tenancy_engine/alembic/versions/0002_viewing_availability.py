"""viewing availability windows

Revision ID: 0002_viewing_availability
Revises: 0001_init
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0002_viewing_availability"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "viewing_availability",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("available_date", sa.Date(), nullable=False),
        sa.Column("time_slots_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("max_viewings_per_day", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_open", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_viewing_availability_property_id", "viewing_availability", ["property_id"])
    op.create_index("ix_viewing_availability_landlord_id", "viewing_availability", ["landlord_id"])
    op.create_index("ix_viewing_availability_day", "viewing_availability", ["property_id", "available_date"])


def downgrade():
    op.drop_table("viewing_availability")
