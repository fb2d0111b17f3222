"""create ledger tables

Revision ID: 3f9a1c7d2e4b
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3f9a1c7d2e4b"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("(CURRENT_TIMESTAMP)"),
                nullable=True,
            )
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "restaurants",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("commission_rate", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("payout_schedule_enabled", sa.Boolean(), nullable=False),
        sa.Column("payout_schedule_day", sa.Integer(), nullable=True),
        sa.Column("payout_notification_days", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "waiters",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_waiters_restaurant_id"), "waiters", ["restaurant_id"])

    op.create_table(
        "tips",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("waiter_id", sa.String(length=36), nullable=True),
        sa.Column("table_id", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("net_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("tip_type", sa.String(length=20), nullable=False),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("payer_phone", sa.String(length=20), nullable=True),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("correlation_id", sa.String(length=255), nullable=True),
        sa.Column("receipt_id", sa.String(length=255), nullable=True),
        sa.Column("settlement_metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["waiter_id"], ["waiters.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_tips_restaurant_id"), "tips", ["restaurant_id"])
    op.create_index(op.f("ix_tips_waiter_id"), "tips", ["waiter_id"])
    op.create_index(op.f("ix_tips_correlation_id"), "tips", ["correlation_id"], unique=True)
    op.create_index(
        "ix_tips_restaurant_status_created",
        "tips",
        ["restaurant_id", "payment_status", "created_at"],
    )

    op.create_table(
        "distribution_groups",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("group_name", sa.String(length=50), nullable=False),
        sa.Column("percentage", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("recipient_account", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", "group_name", name="uq_distribution_groups_name"),
    )
    op.create_index(
        op.f("ix_distribution_groups_restaurant_id"), "distribution_groups", ["restaurant_id"]
    )

    op.create_table(
        "tip_distributions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("tip_id", sa.String(length=36), nullable=False),
        sa.Column("group_name", sa.String(length=50), nullable=False),
        sa.Column("percentage", sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["tip_id"], ["tips.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tip_id", "group_name", name="uq_tip_distributions_tip_group"),
    )
    op.create_index(
        op.f("ix_tip_distributions_restaurant_id"), "tip_distributions", ["restaurant_id"]
    )
    op.create_index(op.f("ix_tip_distributions_tip_id"), "tip_distributions", ["tip_id"])

    op.create_table(
        "payouts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("recipient_type", sa.String(length=20), nullable=False),
        sa.Column("waiter_id", sa.String(length=36), nullable=True),
        sa.Column("group_name", sa.String(length=50), nullable=True),
        sa.Column("recipient_key", sa.String(length=100), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("tip_count", sa.Integer(), nullable=False),
        sa.Column("payout_month", sa.Date(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("rail", sa.String(length=20), nullable=True),
        sa.Column("submission_reference", sa.String(length=100), nullable=True),
        sa.Column("transaction_reference", sa.String(length=255), nullable=True),
        sa.Column("provider_transaction_id", sa.String(length=255), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("failure_kind", sa.String(length=20), nullable=True),
        sa.Column("failure_code", sa.String(length=50), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("payout_metadata", sa.JSON(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["waiter_id"], ["waiters.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "restaurant_id",
            "payout_month",
            "recipient_type",
            "recipient_key",
            name="uq_payouts_recipient_month",
        ),
    )
    op.create_index(op.f("ix_payouts_restaurant_id"), "payouts", ["restaurant_id"])
    op.create_index(op.f("ix_payouts_waiter_id"), "payouts", ["waiter_id"])
    op.create_index(op.f("ix_payouts_payout_month"), "payouts", ["payout_month"])
    op.create_index("ix_payouts_status", "payouts", ["status"])
    op.create_index("ix_payouts_transaction_reference", "payouts", ["transaction_reference"])
    op.create_index("ix_payouts_submission_reference", "payouts", ["submission_reference"])

    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("group_name", sa.String(length=50), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=False),
        sa.Column("account_number", sa.String(length=50), nullable=False),
        sa.Column("bank_name", sa.String(length=255), nullable=False),
        sa.Column("bank_code", sa.String(length=20), nullable=False),
        sa.Column("branch_code", sa.String(length=20), nullable=True),
        sa.Column("swift_code", sa.String(length=20), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", "group_name", name="uq_bank_accounts_group"),
    )
    op.create_index(op.f("ix_bank_accounts_restaurant_id"), "bank_accounts", ["restaurant_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("resource_type", sa.String(length=50), nullable=False),
        sa.Column("resource_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("changes", sa.JSON(), nullable=False),
        sa.Column("actor_type", sa.String(length=50), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_restaurant_id"), "audit_logs", ["restaurant_id"])
    op.create_index(op.f("ix_audit_logs_resource_type"), "audit_logs", ["resource_type"])
    op.create_index(op.f("ix_audit_logs_resource_id"), "audit_logs", ["resource_id"])
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"])

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("correlation_id", sa.String(length=255), nullable=True),
        sa.Column("restaurant_id", sa.String(length=36), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("outcome", sa.String(length=50), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_logs_correlation_id", "webhook_logs", ["correlation_id"])
    op.create_index("ix_webhook_logs_provider", "webhook_logs", ["provider"])
    op.create_index(op.f("ix_webhook_logs_restaurant_id"), "webhook_logs", ["restaurant_id"])

    op.create_table(
        "payout_notifications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("restaurant_id", sa.String(length=36), nullable=False),
        sa.Column("payout_id", sa.String(length=36), nullable=True),
        sa.Column("tip_id", sa.String(length=36), nullable=True),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("recipient", sa.String(length=255), nullable=True),
        sa.Column("recipient_name", sa.String(length=255), nullable=True),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("message", sa.String(length=1000), nullable=False),
        sa.Column("dedupe_key", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dedupe_key"),
    )
    op.create_index(
        op.f("ix_payout_notifications_restaurant_id"), "payout_notifications", ["restaurant_id"]
    )
    op.create_index(
        op.f("ix_payout_notifications_payout_id"), "payout_notifications", ["payout_id"]
    )
    op.create_index(op.f("ix_payout_notifications_tip_id"), "payout_notifications", ["tip_id"])
    op.create_index(op.f("ix_payout_notifications_kind"), "payout_notifications", ["kind"])


def downgrade() -> None:
    op.drop_table("payout_notifications")
    op.drop_table("webhook_logs")
    op.drop_table("audit_logs")
    op.drop_table("bank_accounts")
    op.drop_table("payouts")
    op.drop_table("tip_distributions")
    op.drop_table("distribution_groups")
    op.drop_table("tips")
    op.drop_table("waiters")
    op.drop_table("restaurants")
