"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "identities",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("federated_subject", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_authenticated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("federated_subject", name="uq_identities_federated_subject"),
        sa.UniqueConstraint("email", name="uq_identities_email"),
    )

    op.create_table(
        "token_revocations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("token_fingerprint", sa.String(64), nullable=False),
        sa.Column("identity_id", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_token_revocations_token_fingerprint", "token_revocations", ["token_fingerprint"]
    )
    op.create_index("ix_token_revocations_expires_at", "token_revocations", ["expires_at"])

    op.create_table(
        "usage_counters",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("identity_id", sa.String(64), nullable=False),
        sa.Column("window_key", sa.Date(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("identity_id", "window_key", name="uq_usage_identity_window"),
    )

    op.create_table(
        "cache_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("locator_hash", sa.String(64), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("freshness_token", sa.String(64), nullable=False),
        sa.Column("mode", sa.String(10), nullable=False),
        sa.Column("locator", sa.Text(), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "locator_hash", "content_hash", "freshness_token", "mode", name="uq_cache_key"
        ),
    )
    op.create_index("ix_cache_entries_domain", "cache_entries", ["domain"])
    op.create_index("ix_cache_entries_created_at", "cache_entries", ["created_at"])


def downgrade() -> None:
    op.drop_table("cache_entries")
    op.drop_table("usage_counters")
    op.drop_table("token_revocations")
    op.drop_table("identities")
