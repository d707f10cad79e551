"""payments core: users, entitlement ledger, webhook log and capture claims

Revision ID: 0001_payments_core
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_payments_core"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("is_subscriber", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("points_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points_earned_total", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )
    op.create_index("ix_users_is_banned", "users", ["is_banned"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("plan_type", sa.Text(), nullable=False),
        sa.Column("billing_cycle", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("source", sa.Text(), nullable=False, server_default="purchase"),
        *_timestamps(),
        sa.CheckConstraint("billing_cycle IN ('monthly','yearly')", name="ck_subscriptions_billing_cycle"),
        sa.CheckConstraint("status IN ('active','cancelled')", name="ck_subscriptions_status"),
        sa.CheckConstraint("source IN ('purchase','gift','community_gift')", name="ck_subscriptions_source"),
    )
    op.create_index(
        "uq_subscriptions_active_user",
        "subscriptions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_subscriptions_status_end_date", "subscriptions", ["status", "end_date"])

    op.create_table(
        "donations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("donor_name", sa.Text(), nullable=False),
        sa.Column("donor_email", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending','completed')", name="ck_donations_status"),
        sa.CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    )
    op.create_index("ix_donations_status_created", "donations", ["status", sa.text("created_at DESC")])

    op.create_table(
        "points_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("transaction_type", sa.Text(), nullable=False),
        sa.Column("points_amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("transaction_type IN ('purchase','donation')", name="ck_points_transactions_type"),
    )
    op.create_index(
        "ix_points_transactions_user_created",
        "points_transactions",
        ["user_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "gift_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("custom_id", sa.Text(), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipients", sa.JSON(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("plan_type", sa.Text(), nullable=False),
        sa.Column("billing_cycle", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("gift_message", sa.Text(), nullable=True),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 1 AND quantity <= 100", name="ck_gift_orders_quantity"),
        sa.CheckConstraint("billing_cycle IN ('monthly','yearly')", name="ck_gift_orders_billing_cycle"),
    )

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("platform", sa.Text(), nullable=False, server_default="vaultkeeper"),
        sa.Column("is_subscriber", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_chat_messages_created", "chat_messages", [sa.text("created_at DESC")])

    op.create_table(
        "payment_webhook_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.Text(), nullable=False),
        sa.Column("event_id", sa.Text(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("kind", sa.Text(), nullable=True),
        sa.Column("capture_id", sa.Text(), nullable=True),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="received"),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("provider IN ('paypal','stripe')", name="ck_payment_webhook_events_provider"),
        sa.CheckConstraint(
            "status IN ('received','processed','ignored')",
            name="ck_payment_webhook_events_status",
        ),
        sa.UniqueConstraint("provider", "event_id", name="uq_payment_webhook_events_provider_event_id"),
    )
    op.create_index(
        "ix_payment_webhook_events_status_received",
        "payment_webhook_events",
        ["status", sa.text("received_at DESC")],
    )

    op.create_table(
        "payment_captures",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.Text(), nullable=False),
        sa.Column("capture_id", sa.Text(), nullable=False),
        sa.Column("workflow", sa.Text(), nullable=False),
        sa.Column("reference", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("provider IN ('paypal','stripe')", name="ck_payment_captures_provider"),
        sa.UniqueConstraint("provider", "capture_id", name="uq_payment_captures_provider_capture_id"),
    )


def downgrade():
    op.drop_table("payment_captures")
    op.drop_index("ix_payment_webhook_events_status_received", table_name="payment_webhook_events")
    op.drop_table("payment_webhook_events")
    op.drop_index("ix_chat_messages_created", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_table("gift_orders")
    op.drop_index("ix_points_transactions_user_created", table_name="points_transactions")
    op.drop_table("points_transactions")
    op.drop_index("ix_donations_status_created", table_name="donations")
    op.drop_table("donations")
    op.drop_index("ix_subscriptions_status_end_date", table_name="subscriptions")
    op.drop_index("uq_subscriptions_active_user", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_users_is_banned", table_name="users")
    op.drop_table("users")
