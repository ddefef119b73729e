"""Initial schema: identity store, migration records, violations and guard locks.

Revision ID: 0001
Revises:
Create Date: 2025-09-01 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from cohortmigrate.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "identity",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("billing_reference_id", sa.String(), nullable=True),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("must_reset_password", sa.Boolean(), nullable=False),
        sa.Column("password_set_method", sa.String(length=64), nullable=True),
        sa.Column("password_last_set_at", UTCDateTime(), nullable=True),
        sa.Column("migration_cohort", sa.String(), nullable=True),
        sa.Column("migration_source_file", sa.String(), nullable=True),
        sa.Column("access_tier", sa.String(length=8), nullable=False),
        sa.Column("is_first_login", sa.Boolean(), nullable=False),
        sa.Column("has_set_password", sa.Boolean(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=True),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_identity")),
        sa.UniqueConstraint("email", name=op.f("uq_identity_email")),
    )
    op.create_index("ix_identity_migration_cohort", "identity", ["migration_cohort"])

    op.create_table(
        "migration_snapshot",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("identity_id", sa.String(length=64), nullable=False),
        sa.Column("cohort", sa.String(), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_migration_snapshot")),
    )
    op.create_index(
        "ix_migration_snapshot_identity_cohort",
        "migration_snapshot",
        ["identity_id", "cohort"],
    )

    op.create_table(
        "migration_audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("cohort", sa.String(), nullable=False),
        sa.Column("action", sa.String(length=12), nullable=False),
        sa.Column("executed_by", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=9), nullable=False),
        sa.Column("records_processed", sa.Integer(), nullable=False),
        sa.Column("records_successful", sa.Integer(), nullable=False),
        sa.Column("records_errored", sa.Integer(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("finished_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_migration_audit_log")),
    )
    op.create_index("ix_migration_audit_log_cohort", "migration_audit_log", ["cohort"])

    op.create_table(
        "security_violation",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("occurred_at", UTCDateTime(), nullable=False),
        sa.Column("operation", sa.String(), nullable=False),
        sa.Column("kind", sa.String(length=29), nullable=False),
        sa.Column("actor", sa.String(), nullable=False),
        sa.Column("prevented", sa.Boolean(), nullable=False),
        sa.Column("detail", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_security_violation")),
    )

    op.create_table(
        "guard_lock",
        sa.Column("operation", sa.String(), nullable=False),
        sa.Column("lock_id", sa.String(length=64), nullable=False),
        sa.Column("process_id", sa.Integer(), nullable=False),
        sa.Column("acquired_at", UTCDateTime(), nullable=False),
        sa.Column("expires_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("operation", name=op.f("pk_guard_lock")),
    )


def downgrade() -> None:
    op.drop_table("guard_lock")
    op.drop_table("security_violation")
    op.drop_index("ix_migration_audit_log_cohort", table_name="migration_audit_log")
    op.drop_table("migration_audit_log")
    op.drop_index("ix_migration_snapshot_identity_cohort", table_name="migration_snapshot")
    op.drop_table("migration_snapshot")
    op.drop_index("ix_identity_migration_cohort", table_name="identity")
    op.drop_table("identity")
