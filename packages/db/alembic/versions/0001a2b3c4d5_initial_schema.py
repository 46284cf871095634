# This project was developed with assistance from AI tools.
"""initial schema: users, profiles, reference data, loans, kyc, notifications, audit

Revision ID: 0001a2b3c4d5
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001a2b3c4d5"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        )
    ]
    if with_updated:
        cols.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("role", sa.String(20), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("is_email_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("email_verification_token_hash", sa.String(64), nullable=True),
        sa.Column("email_verification_expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "banks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        *_timestamps(with_updated=False),
    )

    op.create_table(
        "loan_types",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=True, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("interest_rate_min", sa.Numeric(5, 2), nullable=True),
        sa.Column("interest_rate_max", sa.Numeric(5, 2), nullable=True),
        sa.Column("tenor_min_months", sa.Integer, nullable=True),
        sa.Column("tenor_max_months", sa.Integer, nullable=True),
        sa.Column("amount_min", sa.Numeric(14, 2), nullable=True),
        sa.Column("amount_max", sa.Numeric(14, 2), nullable=True),
        sa.Column("schema", sa.JSON, nullable=True),
        sa.Column("required_documents", sa.JSON, nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "bank_loan_types",
        sa.Column(
            "bank_id", sa.Integer, sa.ForeignKey("banks.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column(
            "loan_type_id",
            sa.Integer,
            sa.ForeignKey("loan_types.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "merchant_profiles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("gst_number", sa.String(15), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("pincode", sa.String(6), nullable=True, index=True),
    )

    op.create_table(
        "customer_profiles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("pincode", sa.String(6), nullable=True, index=True),
        sa.Column(
            "merchant_id",
            sa.Integer,
            sa.ForeignKey("merchant_profiles.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )

    op.create_table(
        "banker_profiles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "bank_id",
            sa.Integer,
            sa.ForeignKey("banks.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        ),
        sa.Column("branch", sa.String(255), nullable=True),
        sa.Column("pincode", sa.String(6), nullable=True, index=True),
        sa.Column("employee_id", sa.String(50), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "loans",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "loan_type_id",
            sa.Integer,
            sa.ForeignKey("loan_types.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "applicant_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "merchant_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        ),
        sa.Column(
            "banker_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("tenor_months", sa.Integer, nullable=False),
        sa.Column("metadata", sa.JSON, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("kyc_status", sa.String(20), nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_loans_amount_positive"),
        sa.CheckConstraint("tenor_months > 0", name="ck_loans_tenor_positive"),
    )

    op.create_table(
        "loan_documents",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "loan_id",
            sa.Integer,
            sa.ForeignKey("loans.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("doc_type", sa.String(50), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=False),
        sa.Column("secure_url", sa.String(1000), nullable=True),
        sa.Column("filename", sa.String(255), nullable=True),
        sa.Column("content_type", sa.String(100), nullable=True),
        sa.Column("size_bytes", sa.Integer, nullable=True),
        sa.Column("uploaded_by", sa.String(36), nullable=False),
        *_timestamps(with_updated=False),
    )

    op.create_table(
        "kyc_documents",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("doc_type", sa.String(20), nullable=False),
        sa.Column("storage_key", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("verified_by", sa.String(36), nullable=True),
        sa.Column("review_notes", sa.Text, nullable=True),
        sa.Column("content_type", sa.String(100), nullable=True),
        sa.Column("size_bytes", sa.Integer, nullable=True),
        sa.Column("uploaded_by", sa.String(36), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        *_timestamps(with_updated=False),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("user_role", sa.String(50), nullable=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("loan_id", sa.Integer, nullable=True, index=True),
        sa.Column("details", sa.Text, nullable=True),
        sa.Column("event_data", sa.JSON, nullable=True),
    )
    op.create_index(
        "ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_audit_events_entity", table_name="audit_events")
    for table in (
        "audit_events",
        "notifications",
        "kyc_documents",
        "loan_documents",
        "loans",
        "banker_profiles",
        "customer_profiles",
        "merchant_profiles",
        "bank_loan_types",
        "loan_types",
        "banks",
        "users",
    ):
        op.drop_table(table)
