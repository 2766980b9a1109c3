"""create marketplace tables

Revision ID: a1c4e7f20b31
Revises:
Create Date: 2026-10-19 10:12:44.118204

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1c4e7f20b31"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(150), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        *_timestamps(),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("user_id", sa.String(128), nullable=True, unique=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_admins_id", "admins", ["id"])
    op.create_index("ix_admins_email", "admins", ["email"])

    op.create_table(
        "courses",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("instructor", sa.String(150), nullable=True),
        sa.Column("duration", sa.String(100), nullable=True),
        sa.Column("level", sa.String(50), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("coming_soon", sa.Boolean(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_courses_id", "courses", ["id"])
    op.create_index("ix_courses_category", "courses", ["category"])

    op.create_table(
        "course_batches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.String(100), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("batch_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(150), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("class_links", sa.JSON(), nullable=False),
        sa.Column("schedule", sa.JSON(), nullable=False),
        sa.Column("videos", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("course_id", "batch_number", name="uq_course_batch_number"),
    )
    op.create_index("ix_course_batches_id", "course_batches", ["id"])
    op.create_index("ix_course_batches_course_id", "course_batches", ["course_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("payment_id", sa.String(255), nullable=True),
        sa.Column("order_id", sa.String(255), nullable=True),
        sa.Column("payer_id", sa.String(255), nullable=True),
        sa.Column("course_id", sa.String(100), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("course_title", sa.String(200), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("coupon_code", sa.String(50), nullable=True),
        sa.Column("currency", sa.String(10), nullable=False),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=True),
        sa.Column("user_name", sa.String(150), nullable=True),
        sa.Column("payer_email", sa.String(255), nullable=True),
        sa.Column("payer_name", sa.String(150), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("transaction_status", sa.String(50), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("funding_source", sa.String(50), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("payment_method", "payment_id", name="uq_payment_method_payment_id"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_payment_id", "payments", ["payment_id"])
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("ix_payments_course_id", "payments", ["course_id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    op.create_index("ix_payments_status", "payments", ["status"])

    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(300), primary_key=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.String(100), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("batch_number", sa.Integer(), nullable=False),
        sa.Column("course_title", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_id", sa.String(255), nullable=True),
        sa.Column("order_id", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("coupon_code", sa.String(50), nullable=True),
        sa.Column("enrollment_source", sa.String(30), nullable=False),
        sa.Column("enrolled_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "enrolled_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("last_accessed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_enrollments_id", "enrollments", ["id"])
    op.create_index("ix_enrollments_user_id", "enrollments", ["user_id"])
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])
    op.create_index("ix_enrollments_batch_number", "enrollments", ["batch_number"])
    op.create_index("ix_enrollments_status", "enrollments", ["status"])

    op.create_table(
        "manual_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("course_id", sa.String(100), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("course_title", sa.String(200), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payer_name", sa.String(150), nullable=True),
        sa.Column("payer_email", sa.String(255), nullable=True),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(40), nullable=False),
        sa.Column("status_history", sa.JSON(), nullable=False),
        sa.Column("enrollment_id", sa.String(300), nullable=True),
        sa.Column("enrollment_batch", sa.Integer(), nullable=True),
        sa.Column(
            "payment_record_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=True
        ),
        sa.Column("email_sent", sa.Boolean(), nullable=True),
        sa.Column("verified_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_manual_payments_id", "manual_payments", ["id"])
    op.create_index("ix_manual_payments_user_id", "manual_payments", ["user_id"])
    op.create_index("ix_manual_payments_status", "manual_payments", ["status"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("min_order_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("target_type", sa.String(30), nullable=False),
        sa.Column("target_user_id", sa.String(128), nullable=True),
        sa.Column("target_user_email", sa.String(255), nullable=True),
        sa.Column("course_id", sa.String(100), sa.ForeignKey("courses.id"), nullable=True),
        sa.Column("course_title", sa.String(200), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_limit_per_user", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False),
        sa.Column("usage_history", sa.JSON(), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column(
            "last_modified_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True
        ),
        sa.Column("deleted_by", sa.Integer(), sa.ForeignKey("admins.id"), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_coupons_id", "coupons", ["id"])
    op.create_index("ix_coupons_code", "coupons", ["code"])
    op.create_index("ix_coupons_status", "coupons", ["status"])

    op.create_table(
        "coupon_usage",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=False),
        sa.Column("coupon_code", sa.String(50), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("course_id", sa.String(100), nullable=False),
        sa.Column("order_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("final_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_id", sa.String(255), nullable=True),
        sa.Column("order_id", sa.String(255), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_coupon_usage_id", "coupon_usage", ["id"])
    op.create_index("ix_coupon_usage_coupon_id", "coupon_usage", ["coupon_id"])
    op.create_index("ix_coupon_usage_user_id", "coupon_usage", ["user_id"])

    op.create_table(
        "course_reviews",
        sa.Column("id", sa.String(300), primary_key=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.String(100), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("course_title", sa.String(200), nullable=True),
        sa.Column("user_name", sa.String(150), nullable=True),
        sa.Column("user_email", sa.String(255), nullable=True),
        sa.Column("user_photo_url", sa.String(500), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_course_reviews_id", "course_reviews", ["id"])
    op.create_index("ix_course_reviews_user_id", "course_reviews", ["user_id"])
    op.create_index("ix_course_reviews_course_id", "course_reviews", ["course_id"])

    op.create_table(
        "emails_sent",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("recipient_email", sa.String(255), nullable=True),
        sa.Column("recipient_name", sa.String(150), nullable=True),
        sa.Column("email_type", sa.String(50), nullable=False),
        sa.Column("subject", sa.String(300), nullable=True),
        sa.Column("template_id", sa.String(100), nullable=True),
        sa.Column("course_id", sa.String(100), nullable=True),
        sa.Column("course_title", sa.String(200), nullable=True),
        sa.Column("payment_id", sa.String(255), nullable=True),
        sa.Column("order_id", sa.String(255), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("enrollment_id", sa.String(300), nullable=True),
        sa.Column("provider", sa.String(30), nullable=False),
        sa.Column("provider_response", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("raw_text_content", sa.Text(), nullable=True),
        sa.Column(
            "sent_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_emails_sent_id", "emails_sent", ["id"])
    op.create_index("ix_emails_sent_user_id", "emails_sent", ["user_id"])
    op.create_index("ix_emails_sent_recipient_email", "emails_sent", ["recipient_email"])
    op.create_index("ix_emails_sent_email_type", "emails_sent", ["email_type"])
    op.create_index("ix_emails_sent_course_id", "emails_sent", ["course_id"])
    op.create_index("ix_emails_sent_status", "emails_sent", ["status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(300), nullable=True),
        sa.Column("actor_id", sa.String(128), nullable=True),
        sa.Column("actor_email", sa.String(255), nullable=True),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("previous_data", sa.JSON(), nullable=True),
        sa.Column("new_data", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "emails_sent",
        "course_reviews",
        "coupon_usage",
        "coupons",
        "manual_payments",
        "enrollments",
        "payments",
        "course_batches",
        "courses",
        "admins",
        "users",
    ):
        op.drop_table(table)
