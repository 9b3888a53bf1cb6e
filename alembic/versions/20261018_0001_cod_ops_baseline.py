"""cod ops baseline: orders / batches / audit / idempotency / admin

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, *, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _jsonb(name: str, default: str) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(), nullable=False, server_default=sa.text(f"'{default}'::jsonb"))


def upgrade() -> None:
    # ---------------- 批次（orders.batch_id 的外键目标，先建） ----------------
    op.create_table(
        "batches",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'OPEN'")),
        sa.Column("created_by", sa.String(255), nullable=True),
        _ts("created_at"),
        sa.Column("packing_list_print_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("packing_list_printed_at", nullable=True),
        sa.Column("packing_list_printed_by", sa.String(255), nullable=True),
        sa.Column("packing_slips_print_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("packing_slips_printed_at", nullable=True),
        sa.Column("packing_slips_printed_by", sa.String(255), nullable=True),
        _ts("released_at", nullable=True),
        sa.Column("released_by", sa.String(255), nullable=True),
        sa.Column("export_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("exported_at", nullable=True),
        sa.Column("exported_by", sa.String(255), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("status IN ('OPEN','LOCKED','RELEASED')", name="ck_batches_status"),
    )
    op.create_index("ix_batches_status", "batches", ["status"])
    op.create_index("ix_batches_created_at", "batches", ["created_at"])

    # ---------------- 订单 ----------------
    op.create_table(
        "orders",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("public_order_number", sa.String(32), nullable=False, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'new'")),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default=sa.text("'cod'")),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_fulfilled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("review_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(64), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("city", sa.String(128), nullable=False, server_default=""),
        sa.Column("address_line1", sa.String(512), nullable=False, server_default=""),
        sa.Column("address_line2", sa.String(512), nullable=True),
        sa.Column("raw_city", sa.String(128), nullable=True),
        sa.Column("raw_address", sa.String(512), nullable=True),
        sa.Column("normalized_city", sa.String(128), nullable=True),
        sa.Column("normalized_address", sa.String(512), nullable=True),
        sa.Column("normalization_confidence", sa.Float(), nullable=True),
        sa.Column("notes_customer", sa.Text(), nullable=True),
        sa.Column("internal_note", sa.Text(), nullable=True),
        sa.Column("assigned_to", sa.String(255), nullable=True),
        _jsonb("tags", "[]"),
        sa.Column("courier_name", sa.String(64), nullable=True),
        sa.Column("tracking_number", sa.String(128), nullable=True),
        sa.Column("tracking_url", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("cookie_id_hash", sa.String(128), nullable=True),
        sa.Column("risk_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("risk_level", sa.String(16), nullable=False, server_default=sa.text("'low'")),
        _jsonb("risk_reasons", "[]"),
        sa.Column("batch_id", sa.BigInteger(), sa.ForeignKey("batches.id", ondelete="SET NULL"), nullable=True),
        _ts("released_at", nullable=True),
        sa.Column("merged_into_order_id", sa.BigInteger(), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("shipping_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount_total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_orders_status_confirmed", "orders", ["status", "is_confirmed"])
    op.create_index("ix_orders_batch_id", "orders", ["batch_id"])
    op.create_index("ix_orders_customer_phone", "orders", ["customer_phone"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sku", sa.String(128), nullable=False),
        sa.Column("title", sa.String(255), nullable=False, server_default=""),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "order_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor", sa.String(255), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        _jsonb("payload", "{}"),
        _ts("created_at"),
    )
    op.create_index("ix_order_events_order_time", "order_events", ["order_id", "created_at"])

    # ---------------- 批次明细 / 快照 / 事件 / 打印 ----------------
    op.create_table(
        "batch_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("batch_id", sa.BigInteger(), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.UniqueConstraint("batch_id", "order_id", name="uq_batch_orders_batch_order"),
    )
    op.create_index("ix_batch_orders_order_id", "batch_orders", ["order_id"])

    op.create_table(
        "batch_order_items_snapshot",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("batch_id", sa.BigInteger(), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_id", sa.BigInteger(), sa.ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("sku", sa.String(128), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("qty", sa.Integer(), nullable=False),
    )
    op.create_index("ix_batch_snapshot_batch_id", "batch_order_items_snapshot", ["batch_id"])

    op.create_table(
        "batch_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("batch_id", sa.BigInteger(), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        _jsonb("payload", "{}"),
        _ts("created_at"),
    )
    op.create_index("ix_batch_events_batch_time", "batch_events", ["batch_id", "created_at"])

    op.create_table(
        "batch_print_jobs",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("batch_id", sa.BigInteger(), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("print_type", sa.String(32), nullable=False),
        sa.Column("print_count", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_batch_print_jobs_batch_id", "batch_print_jobs", ["batch_id"])

    # ---------------- 审计 / 幂等 ----------------
    op.create_table(
        "system_events",
        sa.Column("event_id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("actor_id", sa.String(255), nullable=True),
        _jsonb("payload_json", "{}"),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'SUCCESS'")),
        sa.Column("error_message", sa.Text(), nullable=True),
        _ts("created_at"),
        sa.CheckConstraint("status IN ('SUCCESS','FAILED')", name="ck_system_events_status"),
    )
    op.create_index("ix_system_events_entity", "system_events", ["entity_type", "entity_id"])
    op.create_index("ix_system_events_type_time", "system_events", ["event_type", "created_at"])

    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("idempotency_key", sa.String(128), nullable=False),
        sa.Column("action_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        _jsonb("result_json", "{}"),
        _ts("created_at"),
        sa.UniqueConstraint("idempotency_key", name="uq_idempotency_keys_key"),
    )

    # ---------------- 账号 / 配置 ----------------
    op.create_table(
        "admin_users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _ts("created_at"),
    )

    op.create_table(
        "courier_export_settings",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(128), nullable=False, server_default="default"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("include_headers", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _jsonb("fixed_columns_map", "{}"),
    )


def downgrade() -> None:
    op.drop_table("courier_export_settings")
    op.drop_table("admin_users")
    op.drop_table("idempotency_keys")
    op.drop_index("ix_system_events_type_time", table_name="system_events")
    op.drop_index("ix_system_events_entity", table_name="system_events")
    op.drop_table("system_events")
    op.drop_index("ix_batch_print_jobs_batch_id", table_name="batch_print_jobs")
    op.drop_table("batch_print_jobs")
    op.drop_index("ix_batch_events_batch_time", table_name="batch_events")
    op.drop_table("batch_events")
    op.drop_index("ix_batch_snapshot_batch_id", table_name="batch_order_items_snapshot")
    op.drop_table("batch_order_items_snapshot")
    op.drop_index("ix_batch_orders_order_id", table_name="batch_orders")
    op.drop_table("batch_orders")
    op.drop_index("ix_order_events_order_time", table_name="order_events")
    op.drop_table("order_events")
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_table("order_items")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("ix_orders_customer_phone", table_name="orders")
    op.drop_index("ix_orders_batch_id", table_name="orders")
    op.drop_index("ix_orders_status_confirmed", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_batches_created_at", table_name="batches")
    op.drop_index("ix_batches_status", table_name="batches")
    op.drop_table("batches")
