"""init

Revision ID: 5c1e0d7a9b42
Revises:
Create Date: 2026-10-19 10:42:17.503918

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e0d7a9b42"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "commitments",
        sa.Column("commitment", sa.String(66), primary_key=True),
        sa.Column("created_at", sa.BigInteger, nullable=False),
    )

    op.create_table(
        "namespaces",
        sa.Column("namespace_hash", sa.String(66), primary_key=True),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("owner", sa.String(42), nullable=False),
        sa.Column("resolver", sa.String(42), nullable=True),
        sa.Column("expires_at", sa.BigInteger, nullable=False),
        sa.Column("resolver_updated_at", sa.BigInteger, nullable=False),
        sa.Column("created_at", sa.BigInteger, nullable=False),
    )
    op.create_index("idx_namespaces_label", "namespaces", ["label"], unique=True)
    op.create_index("idx_namespaces_resolver", "namespaces", ["resolver"])

    op.create_table(
        "credential_resolver_bindings",
        sa.Column("namespace_hash", sa.String(66), primary_key=True),
        sa.Column("namespace", sa.String(512), nullable=False),
        sa.Column("root_label", sa.String(255), nullable=False),
        sa.Column("resolver", sa.String(42), nullable=False),
        sa.Column("root_created_at", sa.BigInteger, nullable=False),
        sa.Column("updated_at", sa.BigInteger, nullable=False),
    )
    op.create_index(
        "idx_bindings_namespace",
        "credential_resolver_bindings",
        ["namespace"],
        unique=True,
    )
    op.create_index(
        "idx_bindings_root_label", "credential_resolver_bindings", ["root_label"]
    )

    op.create_table(
        "registry_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("event", sa.String(32), nullable=False),
        sa.Column("namespace_hash", sa.String(66), nullable=False),
        sa.Column("namespace", sa.String(512), nullable=False),
        sa.Column("address", sa.String(42), nullable=True),
        sa.Column("key", sa.String(512), nullable=True),
        sa.Column("created_at", sa.BigInteger, nullable=False),
    )
    op.create_index(
        "idx_registry_events_namespace_hash", "registry_events", ["namespace_hash"]
    )

    op.create_table(
        "credential_records",
        sa.Column("resolver", sa.String(42), primary_key=True),
        sa.Column("identifier_hash", sa.String(66), primary_key=True),
        sa.Column("key", sa.String(512), primary_key=True),
        sa.Column("value", sa.String(4096), nullable=False),
        sa.Column("updated_at", sa.BigInteger, nullable=False),
    )


def downgrade() -> None:
    op.drop_table("credential_records")
    op.drop_index("idx_registry_events_namespace_hash", "registry_events")
    op.drop_table("registry_events")
    op.drop_index("idx_bindings_root_label", "credential_resolver_bindings")
    op.drop_index("idx_bindings_namespace", "credential_resolver_bindings")
    op.drop_table("credential_resolver_bindings")
    op.drop_index("idx_namespaces_resolver", "namespaces")
    op.drop_index("idx_namespaces_label", "namespaces")
    op.drop_table("namespaces")
    op.drop_table("commitments")
