"""Create gateway tables

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    ]


def _org_fk() -> sa.Column:
    return sa.Column(
        "org_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    """Tenants, identity mirror, API keys, usage, webhooks and business records."""
    user_role = postgresql.ENUM("root_admin", "admin", "member", "viewer", name="user_role")
    delivery_status = postgresql.ENUM("success", "failed", name="delivery_status")
    audit_action = postgresql.ENUM(
        "api_key.create",
        "api_key.revoke",
        "api_key.rotate",
        "webhook.create",
        "webhook.update",
        name="audit_action",
    )

    op.create_table(
        "organizations",
        _id_column(),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        *_timestamps(),
        sa.CheckConstraint("LENGTH(name) > 0", name="organization_name_not_empty"),
    )
    op.create_index("idx_organizations_name", "organizations", ["name"])

    op.create_table(
        "users",
        _id_column(),
        _org_fk(),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False, server_default="viewer"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("idx_users_org_id", "users", ["org_id"])

    op.create_table(
        "api_keys",
        _id_column(),
        _org_fk(),
        sa.Column("key_name", sa.String(100), nullable=False),
        sa.Column("api_key_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("api_key_prefix", sa.String(20), nullable=False),
        sa.Column("permissions", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rate_limit_per_hour", sa.Integer, nullable=False, server_default="1000"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_api_keys_org_id", "api_keys", ["org_id"])

    op.create_table(
        "api_usage_logs",
        _id_column(),
        sa.Column("api_key_hash", sa.String(64), nullable=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("endpoint", sa.String(255), nullable=False),
        sa.Column("method", sa.String(10), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("response_status", sa.Integer, nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_api_usage_key_created", "api_usage_logs", ["api_key_hash", "created_at"])
    op.create_index("idx_api_usage_created", "api_usage_logs", ["created_at"])
    op.create_index("idx_api_usage_org_id", "api_usage_logs", ["org_id"])

    op.create_table(
        "webhook_endpoints",
        _id_column(),
        _org_fk(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("secret_token", sa.String(255), nullable=False),
        sa.Column("events", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("timeout_seconds", sa.Integer, nullable=False, server_default="30"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("failure_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_success_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_failure_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("timeout_seconds > 0", name="webhook_timeout_positive"),
        sa.CheckConstraint("failure_count >= 0", name="webhook_failure_count_non_negative"),
    )
    op.create_index("idx_webhook_endpoints_org_id", "webhook_endpoints", ["org_id"])

    op.create_table(
        "webhook_delivery_logs",
        _id_column(),
        sa.Column(
            "webhook_endpoint_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("webhook_endpoints.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("payload", postgresql.JSONB, nullable=False),
        sa.Column("delivery_status", delivery_status, nullable=False),
        sa.Column("response_status", sa.Integer, nullable=True),
        sa.Column("response_body", sa.Text, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("attempted_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_webhook_deliveries_endpoint_time",
        "webhook_delivery_logs",
        ["webhook_endpoint_id", "attempted_at"],
    )
    op.create_index("idx_webhook_deliveries_status", "webhook_delivery_logs", ["delivery_status"])

    # Delivery logs are an append-only audit trail
    op.execute(
        """
        CREATE OR REPLACE FUNCTION reject_delivery_log_mutation() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'webhook_delivery_logs is append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER webhook_delivery_logs_append_only
        BEFORE UPDATE ON webhook_delivery_logs
        FOR EACH ROW
        EXECUTE FUNCTION reject_delivery_log_mutation();
        """
    )

    op.create_table(
        "audit_events",
        _id_column(),
        _org_fk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", audit_action, nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("diff_json", postgresql.JSONB, nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_audit_events_org_created", "audit_events", ["org_id", "created_at"])
    op.create_index("idx_audit_events_entity", "audit_events", ["entity_type", "entity_id"])
    op.create_index("idx_audit_events_user_id", "audit_events", ["user_id"])

    op.create_table(
        "projects",
        _id_column(),
        _org_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="planning"),
        sa.Column("budget", sa.Numeric(14, 2), nullable=True),
        sa.Column("start_date", sa.Date, nullable=True),
        sa.Column("end_date", sa.Date, nullable=True),
        sa.Column("completion_percentage", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_table(
        "estimates",
        _id_column(),
        _org_fk(),
        sa.Column("estimate_number", sa.String(50), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="draft"),
        *_timestamps(),
    )
    op.create_table(
        "invoices",
        _id_column(),
        _org_fk(),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="draft"),
        sa.Column("due_date", sa.Date, nullable=True),
        *_timestamps(),
    )
    for table in ("projects", "estimates", "invoices"):
        op.create_index(f"idx_{table}_org_id", table, ["org_id"])


def downgrade() -> None:
    for table in ("invoices", "estimates", "projects", "audit_events"):
        op.drop_table(table)
    op.execute("DROP TRIGGER IF EXISTS webhook_delivery_logs_append_only ON webhook_delivery_logs")
    op.execute("DROP FUNCTION IF EXISTS reject_delivery_log_mutation()")
    for table in (
        "webhook_delivery_logs",
        "webhook_endpoints",
        "api_usage_logs",
        "api_keys",
        "users",
        "organizations",
    ):
        op.drop_table(table)
    for enum_name in ("audit_action", "delivery_status", "user_role"):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
