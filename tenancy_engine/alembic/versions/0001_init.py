"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _ts():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="tenant"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("email", name="uq_app_users_email"),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"])

    op.create_table(
        "tenant_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("rental_history_months", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("employment_status", sa.String(length=20), nullable=False, server_default="unemployed"),
        sa.Column("annual_salary_minor", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("evictions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("negative_references", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verification_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tenant_score", sa.Integer(), nullable=True),
        *_ts(),
        sa.UniqueConstraint("user_id", name="uq_tenant_profiles_user"),
    )
    op.create_index("ix_tenant_profiles_user_id", "tenant_profiles", ["user_id"])

    op.create_table(
        "documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("document_type", sa.String(length=20), nullable=False),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column("verification_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_documents_user_id", "documents", ["user_id"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending_verification"),
        sa.Column("rent_amount_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        *_ts(),
    )
    op.create_index("ix_properties_landlord_id", "properties", ["landlord_id"])

    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("move_in_date", sa.Date(), nullable=True),
        sa.Column("lease_length_months", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("share_id_document", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("share_income_document", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("share_employment_document", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("share_references", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("number_of_occupants", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("has_pets", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("pet_type", sa.String(length=100), nullable=True),
        sa.Column("pet_count", sa.Integer(), nullable=True),
        sa.Column("decision_note", sa.Text(), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("decided_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        *_ts(),
    )
    op.create_index("ix_applications_property_id", "applications", ["property_id"])
    op.create_index("ix_applications_tenant_id", "applications", ["tenant_id"])
    op.create_index("ix_applications_landlord_id", "applications", ["landlord_id"])
    op.create_index("ix_applications_property_status", "applications", ["property_id", "status"])

    op.create_table(
        "viewings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("requested_date", sa.Date(), nullable=False),
        sa.Column("requested_time_slot", sa.String(length=50), nullable=False),
        sa.Column("tenant_message", sa.Text(), nullable=True),
        sa.Column("meeting_location", sa.String(length=255), nullable=True),
        sa.Column("meeting_instructions", sa.Text(), nullable=True),
        sa.Column("landlord_notes", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        *_ts(),
    )
    op.create_index("ix_viewings_property_id", "viewings", ["property_id"])
    op.create_index("ix_viewings_tenant_id", "viewings", ["tenant_id"])
    op.create_index("ix_viewings_landlord_id", "viewings", ["landlord_id"])
    op.create_index("ix_viewings_status", "viewings", ["status"])
    op.create_index("ix_viewings_slot", "viewings", ["property_id", "requested_date", "requested_time_slot"])

    op.create_table(
        "viewing_feedback",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("viewing_id", sa.Integer(), sa.ForeignKey("viewings.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_rating", sa.Integer(), nullable=True),
        sa.Column("tenant_comment", sa.Text(), nullable=True),
        sa.Column("tenant_liked_json", sa.Text(), nullable=True),
        sa.Column("tenant_disliked_json", sa.Text(), nullable=True),
        sa.Column("would_tenant_apply", sa.Boolean(), nullable=True),
        sa.Column("tenant_submitted_at", sa.DateTime(), nullable=True),
        sa.Column("landlord_rating", sa.Integer(), nullable=True),
        sa.Column("landlord_comment", sa.Text(), nullable=True),
        sa.Column("landlord_impression", sa.String(length=50), nullable=True),
        sa.Column("would_landlord_accept", sa.Boolean(), nullable=True),
        sa.Column("landlord_submitted_at", sa.DateTime(), nullable=True),
        *_ts(),
        sa.UniqueConstraint("viewing_id", name="uq_viewing_feedback_viewing"),
    )
    op.create_index("ix_viewing_feedback_property_id", "viewing_feedback", ["property_id"])

    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("application_id", sa.Integer(), sa.ForeignKey("applications.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("monthly_rent_minor", sa.Integer(), nullable=False),
        sa.Column("security_deposit_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("special_conditions", sa.Text(), nullable=True),
        sa.Column("document_url", sa.String(length=500), nullable=True),
        sa.Column("checklist_template_id", sa.Integer(), nullable=True),
        sa.Column("landlord_signature", sa.Text(), nullable=True),
        sa.Column("landlord_signed_at", sa.DateTime(), nullable=True),
        sa.Column("tenant_signature", sa.Text(), nullable=True),
        sa.Column("tenant_signed_at", sa.DateTime(), nullable=True),
        sa.Column("deposit_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deposit_paid_at", sa.DateTime(), nullable=True),
        sa.Column("deposit_payment_method", sa.String(length=50), nullable=True),
        sa.Column("deposit_payment_reference", sa.String(length=255), nullable=True),
        sa.Column("first_month_rent_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("first_month_rent_paid_at", sa.DateTime(), nullable=True),
        sa.Column("first_month_rent_payment_method", sa.String(length=50), nullable=True),
        sa.Column("first_month_rent_payment_reference", sa.String(length=255), nullable=True),
        sa.Column("keys_collected", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("keys_collected_at", sa.DateTime(), nullable=True),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("terminated_at", sa.DateTime(), nullable=True),
        sa.Column("termination_reason", sa.Text(), nullable=True),
        *_ts(),
        sa.UniqueConstraint("application_id", name="uq_contracts_application"),
    )
    op.create_index("ix_contracts_property_id", "contracts", ["property_id"])
    op.create_index("ix_contracts_landlord_id", "contracts", ["landlord_id"])
    op.create_index("ix_contracts_tenant_id", "contracts", ["tenant_id"])
    op.create_index("ix_contracts_status", "contracts", ["status"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contract_id", sa.Integer(), sa.ForeignKey("contracts.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("payment_type", sa.String(length=20), nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("external_reference", sa.String(length=255), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        *_ts(),
        sa.UniqueConstraint("external_reference", name="uq_payments_external_reference"),
    )
    op.create_index("ix_payments_contract_id", "payments", ["contract_id"])
    op.create_index("ix_payments_tenant_id", "payments", ["tenant_id"])

    op.create_table(
        "key_collections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("contract_id", sa.Integer(), sa.ForeignKey("contracts.id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("collection_date", sa.DateTime(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("landlord_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("tenant_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("landlord_notes", sa.Text(), nullable=True),
        sa.Column("tenant_notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_ts(),
        sa.UniqueConstraint("contract_id", name="uq_key_collections_contract"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_workflow_events_property_id", "workflow_events", ["property_id"])
    op.create_index("ix_workflow_events_event_type", "workflow_events", ["event_type"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("event_type", sa.String(length=80), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_dispatched_at", "notifications", ["dispatched_at"])


def downgrade():
    for table in (
        "notifications",
        "workflow_events",
        "audit_events",
        "key_collections",
        "payments",
        "contracts",
        "viewing_feedback",
        "viewings",
        "applications",
        "properties",
        "documents",
        "tenant_profiles",
        "app_users",
    ):
        op.drop_table(table)
