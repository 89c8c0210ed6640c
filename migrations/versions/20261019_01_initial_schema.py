"""Initial schema: users, properties, payments, badges, reports and shares."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def upgrade() -> None:  # noqa: D401
    """Create tables, constraints and indexes."""

    user_role = sa.Enum("TENANT", "LANDLORD", "ADMIN", name="user_role")
    user_status = sa.Enum("ACTIVE", "INVITED", "DISABLED", name="user_status")
    user_role.create(op.get_bind(), checkfirst=True)
    user_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("rlid", sa.String(length=32), unique=True),
        sa.Column("role", user_role, nullable=False, server_default="TENANT"),
        sa.Column("status", user_status, nullable=False, server_default="ACTIVE"),
        *_timestamps(),
    )

    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("landlord_id", sa.String(length=36)),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=False),
        sa.Column("postcode", sa.String(length=16), nullable=False),
        sa.Column("monthly_rent_pence", sa.Integer(), nullable=False),
        sa.Column("landlord_name", sa.String(length=255)),
        sa.Column("landlord_email", sa.String(length=320)),
        sa.Column("landlord_phone", sa.String(length=32)),
        sa.Column("tenancy_start_date", sa.Date()),
        sa.Column("tenancy_end_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["landlord_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_properties_tenant_id", "properties", ["tenant_id"])
    op.create_index("ix_properties_landlord_id", "properties", ["landlord_id"])

    op.create_table(
        "rent_payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("period", sa.String(length=7), nullable=False),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.Date()),
        sa.Column("paid_date", sa.Date()),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="manual"),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("external_reference", sa.String(length=128)),
        sa.Column("superseded_by_id", sa.String(length=36)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["superseded_by_id"], ["rent_payments.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("property_id", "period", "source", name="uq_rent_payments_property_period_source"),
    )
    op.create_index("ix_rent_payments_tenant_id", "rent_payments", ["tenant_id"])
    op.create_index("ix_rent_payments_property_due", "rent_payments", ["property_id", "due_date"])

    op.create_table(
        "tenant_badges",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("badge_type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=128), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("icon_name", sa.String(length=32), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("earned_at", sa.Date(), nullable=False),
        sa.Column("details", sa.JSON()),
        sa.Column("notified_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("tenant_id", "badge_type", name="uq_tenant_badges_tenant_badge_type"),
    )

    op.create_table(
        "reports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("report_type", sa.String(length=16), nullable=False),
        sa.Column("rent_score", sa.Integer(), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("body", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["tenant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_reports_tenant_id", "reports", ["tenant_id"])

    op.create_table(
        "report_shares",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("report_id", sa.String(length=36), nullable=False),
        sa.Column("share_token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("share_url", sa.String(length=512), nullable=False),
        sa.Column("recipient_email", sa.String(length=320)),
        sa.Column("recipient_type", sa.String(length=16)),
        sa.Column("access_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_report_shares_report_id", "report_shares", ["report_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("actor_id", sa.String(length=36)),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("resource_type", sa.String(length=128), nullable=False),
        sa.Column("resource_id", sa.String(length=128)),
        sa.Column("payload", sa.JSON()),
        sa.Column("ip_address", sa.String(length=64)),
        *_timestamps(),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_resource", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_report_shares_report_id", table_name="report_shares")
    op.drop_table("report_shares")
    op.drop_index("ix_reports_tenant_id", table_name="reports")
    op.drop_table("reports")
    op.drop_table("tenant_badges")
    op.drop_index("ix_rent_payments_property_due", table_name="rent_payments")
    op.drop_index("ix_rent_payments_tenant_id", table_name="rent_payments")
    op.drop_table("rent_payments")
    op.drop_index("ix_properties_landlord_id", table_name="properties")
    op.drop_index("ix_properties_tenant_id", table_name="properties")
    op.drop_table("properties")
    op.drop_table("users")

    _drop_enum("user_status")
    _drop_enum("user_role")
