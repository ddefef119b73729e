"""Identity lookup keys: case-folded email and display name stored alongside the row.

Revision ID: 0002
Revises: 0001
Create Date: 2025-10-01 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from cohortmigrate.domain.model import normalize_email, normalize_name

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("identity") as batch:
        batch.add_column(sa.Column("email_key", sa.String(), nullable=True))
        batch.add_column(sa.Column("name_key", sa.String(), nullable=True))
    op.create_index("ix_identity_email_key", "identity", ["email_key"])
    op.create_index("ix_identity_name_key", "identity", ["name_key"])

    identity = sa.table(
        "identity",
        sa.column("id", sa.String()),
        sa.column("email", sa.String()),
        sa.column("first_name", sa.String()),
        sa.column("last_name", sa.String()),
        sa.column("email_key", sa.String()),
        sa.column("name_key", sa.String()),
    )
    bind = op.get_bind()
    rows = bind.execute(
        sa.select(identity.c.id, identity.c.email, identity.c.first_name, identity.c.last_name)
    ).all()
    for row in rows:
        full_name = " ".join(part for part in (row.first_name, row.last_name) if part)
        bind.execute(
            identity.update()
            .where(identity.c.id == row.id)
            .values(email_key=normalize_email(row.email), name_key=normalize_name(full_name))
        )


def downgrade() -> None:
    op.drop_index("ix_identity_name_key", table_name="identity")
    op.drop_index("ix_identity_email_key", table_name="identity")
    with op.batch_alter_table("identity") as batch:
        batch.drop_column("name_key")
        batch.drop_column("email_key")
