"""initial routing tables

Revision ID: 3a7c1e5d9b20
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3a7c1e5d9b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    """Upgrade schema: tenants, connectors, messenger profiles and chat connections."""
    op.create_table(
        "tenant_integrations",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("client_endpoint", sa.String(length=512), nullable=True),
        sa.Column("access_token", sa.String(length=512), nullable=True),
        sa.Column("refresh_token", sa.String(length=512), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_id", sa.String(length=255), nullable=True),
        sa.Column("client_secret", sa.String(length=255), nullable=True),
        sa.Column("application_token", sa.String(length=255), nullable=True),
        sa.Column("max_token", sa.String(length=512), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
        sa.UniqueConstraint("domain", name="uq_tenant_integrations_domain"),
    )

    op.create_table(
        "tenant_connectors",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("integration_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("messenger_type", sa.String(length=32), nullable=False),
        sa.Column("connector_id", sa.String(length=255), nullable=False),
        sa.Column("line_id", sa.String(length=64), nullable=True),
        sa.Column(
            "is_registered",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["integration_id"], ["tenant_integrations.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint("connector_id", name="uq_tenant_connectors_connector_id"),
        sa.UniqueConstraint(
            "integration_id", "messenger_type", name="uq_tenant_connectors_type"
        ),
    )

    op.create_table(
        "messenger_profiles",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("owner_id", sa.String(length=255), nullable=True),
        sa.Column("messenger_type", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("token", sa.String(length=512), nullable=True),
        sa.Column("encrypted_session", sa.LargeBinary(), nullable=True),
        sa.Column("extra", postgresql.JSONB(), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_messenger_profiles_owner_id", "messenger_profiles", ["owner_id"]
    )
    op.create_index("ix_messenger_profiles_token", "messenger_profiles", ["token"])
    op.create_index("ix_messenger_profiles_domain", "messenger_profiles", ["domain"])

    op.create_table(
        "messenger_chat_connections",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("messenger_type", sa.String(length=32), nullable=False),
        sa.Column("messenger_chat_id", sa.String(length=255), nullable=False),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("connector_id", sa.String(length=255), nullable=True),
        sa.Column("counterpart_id", sa.String(length=255), nullable=True),
        sa.Column("counterpart_name", sa.String(length=255), nullable=True),
        sa.Column("profile_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["profile_id"], ["messenger_profiles.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "messenger_type",
            "messenger_chat_id",
            name="uq_chat_connections_type_chat",
        ),
    )
    op.create_index(
        "ix_chat_connections_domain", "messenger_chat_connections", ["domain"]
    )
    op.create_index(
        "ix_messenger_chat_connections_profile_id",
        "messenger_chat_connections",
        ["profile_id"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("messenger_chat_connections")
    op.drop_table("messenger_profiles")
    op.drop_table("tenant_connectors")
    op.drop_table("tenant_integrations")
