# backend/alembic/versions/001_initial_schema.py
"""Initial settlement schema - users, venues, activities, bookings, refunds, wallet

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-14 00:00:00.000000

Creates every table used by the cancellation, franchise fee, Tax-Free
Childcare and wallet flows. Money is stored as integer pence.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    print("Creating settlement schema...")

    op.create_table(
        "users",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="parent"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "children",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "parent_id",
            sa.String(26),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_children_parent_id", "children", ["parent_id"])

    op.create_table(
        "business_accounts",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("franchise_fee_type", sa.String(20), nullable=False, server_default="percent"),
        sa.Column(
            "franchise_fee_value",
            sa.Numeric(10, 2),
            nullable=False,
            server_default="0",
            comment="Percent (0-100) or fixed amount in pence",
        ),
        sa.Column("vat_mode", sa.String(20), nullable=False, server_default="inclusive"),
        sa.Column("admin_fee_pence", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(
            "franchise_fee_type IN ('percent', 'fixed')", name="ck_business_fee_type"
        ),
        sa.CheckConstraint("vat_mode IN ('inclusive', 'exclusive')", name="ck_business_vat_mode"),
    )

    op.create_table(
        "venues",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "business_account_id",
            sa.String(26),
            sa.ForeignKey("business_accounts.id"),
            nullable=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("inherit_franchise_fee", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("franchise_fee_type", sa.String(20), nullable=True),
        sa.Column("franchise_fee_value", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_venues_business_account_id", "venues", ["business_account_id"])

    op.create_table(
        "provider_settings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "venue_id",
            sa.String(26),
            sa.ForeignKey("venues.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("admin_fee_pence", sa.Integer(), nullable=True),
        sa.Column(
            "default_refund_method", sa.String(20), nullable=False, server_default="credit"
        ),
        sa.Column("tfc_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tfc_hold_period_days", sa.Integer(), nullable=True),
        sa.Column("tfc_instructions", sa.Text(), nullable=True),
        sa.Column("tfc_payee_name", sa.String(255), nullable=True),
        sa.Column("tfc_payee_reference", sa.String(100), nullable=True),
        sa.Column("tfc_sort_code", sa.String(10), nullable=True),
        sa.Column("tfc_account_number", sa.String(20), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "activities",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("venue_id", sa.String(26), sa.ForeignKey("venues.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "start_at", sa.DateTime(timezone=True), nullable=False, comment="First session start"
        ),
        sa.Column("session_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("session_interval_days", sa.Integer(), nullable=False, server_default="7"),
        sa.Column("price_pence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("session_count >= 1", name="ck_activity_session_count"),
        sa.CheckConstraint("session_interval_days >= 0", name="ck_activity_session_interval"),
    )
    op.create_index("ix_activities_venue_id", "activities", ["venue_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("parent_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("child_id", sa.String(26), sa.ForeignKey("children.id"), nullable=False),
        sa.Column("activity_id", sa.String(26), sa.ForeignKey("activities.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column(
            "card_amount_pence",
            sa.Integer(),
            nullable=True,
            comment="Card-paid share of a mixed payment",
        ),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="card"),
        sa.Column("payment_status", sa.String(30), nullable=False, server_default="paid"),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("tfc_reference", sa.String(32), nullable=True, unique=True),
        sa.Column("tfc_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tfc_instructions", sa.Text(), nullable=True),
        sa.Column("hold_period_days", sa.Integer(), nullable=True),
        sa.Column("tfc_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tfc_confirmed_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("tfc_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column(
            "cancellation_outcome",
            sa.String(30),
            nullable=True,
            comment="Refund policy branch applied on cancellation",
        ),
        sa.Column("cancellation_refund_pence", sa.Integer(), nullable=True),
        sa.Column("cancellation_credit_pence", sa.Integer(), nullable=True),
        sa.Column("cancellation_fee_pence", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_pence >= 0", name="ck_booking_amount_non_negative"),
        sa.CheckConstraint(
            "payment_method IN ('card', 'tfc', 'voucher', 'mixed')",
            name="ck_booking_payment_method",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_parent_id", "bookings", ["parent_id"])
    op.create_index("ix_bookings_activity_id", "bookings", ["activity_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index(
        "ix_bookings_tfc_pending", "bookings", ["payment_method", "payment_status", "tfc_deadline"]
    )

    op.create_table(
        "refund_transactions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "booking_id",
            sa.String(26),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("parent_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount_pence", sa.Integer(), nullable=False, comment="Net cash refund"),
        sa.Column("fee_pence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("method", sa.String(20), nullable=False, server_default="card"),
        sa.Column("reason", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("admin_id", sa.String(26), nullable=True),
        sa.Column("stripe_refund_id", sa.String(255), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("audit_trail", sa.JSON(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_refund_transactions_booking_id", "refund_transactions", ["booking_id"])
    op.create_index("ix_refund_transactions_status", "refund_transactions", ["status"])

    op.create_table(
        "wallet_credits",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "parent_id",
            sa.String(26),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "provider_id",
            sa.String(26),
            sa.ForeignKey("venues.id"),
            nullable=True,
            comment="NULL means usable anywhere",
        ),
        sa.Column("booking_id", sa.String(26), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("used_amount_pence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        sa.Column("expiry_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount_pence >= 0", name="ck_wallet_credit_amount"),
        sa.CheckConstraint(
            "used_amount_pence >= 0 AND used_amount_pence <= amount_pence",
            name="ck_wallet_credit_used_within_amount",
        ),
    )
    op.create_index("ix_wallet_credits_parent_id", "wallet_credits", ["parent_id"])
    op.create_index(
        "ix_wallet_credits_parent_status_expiry",
        "wallet_credits",
        ["parent_id", "status", "expiry_date"],
    )

    op.create_table(
        "wallet_credit_usages",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "credit_id",
            sa.String(26),
            sa.ForeignKey("wallet_credits.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount_pence", sa.Integer(), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=True),
        sa.Column("transaction_id", sa.String(100), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_wallet_credit_usages_credit_id", "wallet_credit_usages", ["credit_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(26),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_user_type", "notifications", ["user_id", "type"])

    print("Settlement schema created")


def downgrade() -> None:
    print("Dropping settlement schema...")
    for table in (
        "notifications",
        "wallet_credit_usages",
        "wallet_credits",
        "refund_transactions",
        "bookings",
        "activities",
        "provider_settings",
        "venues",
        "business_accounts",
        "children",
        "users",
    ):
        op.drop_table(table)
