from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_onboarding_foundations"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def _jsonb(default: str):
    return postgresql.JSONB(astext_type=sa.Text()), sa.text(f"'{default}'::jsonb")


def upgrade() -> None:
    obj_type, obj_default = _jsonb("{}")
    arr_type, arr_default = _jsonb("[]")

    op.create_table(
        "pending_leads",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("confirmation_token", sa.String(length=120), nullable=False),
        sa.Column("confirmation_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source_type", sa.String(length=30), nullable=False, server_default="manual"),
        sa.Column("source_url", sa.Text(), nullable=True),
        sa.Column("source_data", obj_type, nullable=False, server_default=obj_default),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("instagram_handle", sa.String(length=120), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("portfolio_urls", arr_type, nullable=False, server_default=arr_default),
        sa.Column("price_from", sa.Numeric(12, 2), nullable=True),
        sa.Column("tags", arr_type, nullable=False, server_default=arr_default),
        sa.Column("instagram_followers", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("converted_vendor_id", sa.String(), nullable=True),
        sa.Column("outreach_status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("invitation_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invitation_method", sa.String(length=30), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reminder_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("reinvited_from_id", sa.String(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint(
            "status IN ('pending','invited','viewed','confirmed','declined','expired')",
            name="ck_pending_leads_status",
        ),
        sa.CheckConstraint(
            "(status = 'confirmed') = (converted_vendor_id IS NOT NULL)",
            name="ck_pending_leads_confirmed_has_vendor",
        ),
    )
    op.create_index("ix_pending_leads_confirmation_token", "pending_leads", ["confirmation_token"], unique=True)
    op.create_index("ix_pending_leads_status", "pending_leads", ["status"])
    op.create_index("ix_pending_leads_open_expiry", "pending_leads", ["status", "confirmation_expires_at"])

    op.create_table(
        "vendors",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("source_lead_id", sa.String(), sa.ForeignKey("pending_leads.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("instagram_handle", sa.String(length=120), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("portfolio_gallery", arr_type, nullable=False, server_default=arr_default),
        sa.Column("price_from", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tags", arr_type, nullable=False, server_default=arr_default),
        sa.Column("edit_token_hash", sa.Text(), nullable=False),
        sa.Column("edit_token_sealed", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
        sa.UniqueConstraint("source_lead_id", name="uq_vendors_source_lead_id"),
        sa.UniqueConstraint("edit_token_hash", name="uq_vendors_edit_token_hash"),
    )
    op.create_index("ix_vendors_user_id", "vendors", ["user_id"])
    op.create_index("ix_vendors_email", "vendors", ["email"])

    op.create_table(
        "gigs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("vendor_id", sa.String(), sa.ForeignKey("vendors.id"), nullable=True),
        sa.Column("invite_token", sa.String(length=120), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_from", sa.Numeric(12, 2), nullable=True),
        sa.Column("payload", obj_type, nullable=False, server_default=obj_default),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="draft_profile_missing"),
        sa.Column("moderation_status", sa.String(length=30), nullable=True),
        sa.Column("wizard_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_audit_columns(),
        # only draft gigs may be ownerless
        sa.CheckConstraint(
            "vendor_id IS NOT NULL OR status IN ('draft','draft_profile_missing')",
            name="ck_gigs_owner_before_review",
        ),
    )
    op.create_index("ix_gigs_vendor_id", "gigs", ["vendor_id"])
    op.create_index("ix_gigs_invite_token", "gigs", ["invite_token"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("target_type", sa.String(length=120), nullable=True),
        sa.Column("target_id", sa.String(length=200), nullable=True),
        sa.Column("details", obj_type, nullable=False, server_default=obj_default),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_target", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_gigs_invite_token", table_name="gigs")
    op.drop_index("ix_gigs_vendor_id", table_name="gigs")
    op.drop_table("gigs")

    op.drop_index("ix_vendors_email", table_name="vendors")
    op.drop_index("ix_vendors_user_id", table_name="vendors")
    op.drop_table("vendors")

    op.drop_index("ix_pending_leads_open_expiry", table_name="pending_leads")
    op.drop_index("ix_pending_leads_status", table_name="pending_leads")
    op.drop_index("ix_pending_leads_confirmation_token", table_name="pending_leads")
    op.drop_table("pending_leads")
