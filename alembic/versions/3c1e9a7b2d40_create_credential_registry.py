"""create credential registry tables

Revision ID: 3c1e9a7b2d40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1e9a7b2d40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "credentials",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("owner", sa.Text(), nullable=False),
        sa.Column("uri", sa.String(length=256), nullable=False),
        sa.Column(
            "revoked", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("char_length(uri) BETWEEN 1 AND 256", name="ck_uri_length"),
    )
    op.create_index("ix_credentials_owner", "credentials", ["owner"])

    registry_state = op.create_table(
        "registry_state",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("last_credential_id", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    # The single row every registry transaction locks.
    op.bulk_insert(registry_state, [{"id": 1, "last_credential_id": 0}])


def downgrade() -> None:
    op.drop_table("registry_state")
    op.drop_index("ix_credentials_owner", table_name="credentials")
    op.drop_table("credentials")
