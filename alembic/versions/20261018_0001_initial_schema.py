"""Initial schema for users, tips and token visibility lists.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users and bearer sessions
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=True),
        sa.Column("username", sa.String(64), nullable=True),
        sa.Column("display_name", sa.String(128), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("is_banned", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("wallet_address", name="uq_users_wallet_address"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "user_sessions",
        sa.Column("session_token", sa.String(128), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("session_token"),
    )
    op.create_index("idx_user_sessions_user", "user_sessions", ["user_id"])

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("tip_count", sa.Integer(), nullable=False),
        sa.Column("total_tips_received", sa.Numeric(48, 18), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # Tippable tokens and tips
    op.create_table(
        "tokens",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("symbol", sa.String(32), nullable=False),
        sa.Column("contract_address", sa.String(42), nullable=True),
        sa.Column("decimals", sa.Integer(), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False),
        sa.Column("logo_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_tokens_contract", "tokens", ["contract_address"])

    op.create_table(
        "tips",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("from_user_id", sa.String(36), nullable=False),
        sa.Column("to_user_id", sa.String(36), nullable=False),
        sa.Column("token_id", sa.String(36), nullable=False),
        sa.Column("amount", sa.String(80), nullable=False),
        sa.Column("transaction_hash", sa.String(66), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("usd_value_at_time", sa.Numeric(24, 6), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_hash", name="uq_tips_transaction_hash"),
    )
    op.create_index("idx_tips_from_user", "tips", ["from_user_id"])
    op.create_index("idx_tips_to_user", "tips", ["to_user_id"])
    op.create_index("idx_tips_status_created", "tips", ["status", "created_at"])

    # Visibility lists
    op.create_table(
        "hidden_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("token_address", sa.String(42), nullable=False),
        sa.Column("symbol", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "token_address", name="uq_hidden_tokens_user_token"),
    )
    op.create_index("idx_hidden_tokens_user", "hidden_tokens", ["user_id"])

    op.create_table(
        "hidden_nfts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("contract_address", sa.String(42), nullable=False),
        sa.Column("token_id", sa.String(80), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "contract_address", "token_id", name="uq_hidden_nfts_user_nft"),
    )
    op.create_index("idx_hidden_nfts_user", "hidden_nfts", ["user_id"])

    op.create_table(
        "blacklisted_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token_address", sa.String(42), nullable=False),
        sa.Column("symbol", sa.String(64), nullable=True),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("report_count", sa.Integer(), nullable=False),
        sa.Column("blacklisted_by", sa.String(36), nullable=True),
        sa.Column("blacklisted_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_address", name="uq_blacklisted_tokens_address"),
    )

    op.create_table(
        "verified_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("token_address", sa.String(42), nullable=False),
        sa.Column("symbol", sa.String(64), nullable=True),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("verified_by", sa.String(36), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_address", name="uq_verified_tokens_address"),
    )

    op.create_table(
        "discovered_tokens",
        sa.Column("token_address", sa.String(42), nullable=False),
        sa.Column("symbol", sa.String(64), nullable=True),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("decimals", sa.Integer(), nullable=False),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("seen_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("token_address"),
    )
    op.create_index("idx_discovered_tokens_seen_count", "discovered_tokens", ["seen_count"])

    op.create_table(
        "nft_collections",
        sa.Column("contract_address", sa.String(42), nullable=False),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("symbol", sa.String(64), nullable=True),
        sa.Column("is_blacklisted", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("contract_address"),
    )


def downgrade() -> None:
    op.drop_table("nft_collections")
    op.drop_index("idx_discovered_tokens_seen_count", table_name="discovered_tokens")
    op.drop_table("discovered_tokens")
    op.drop_table("verified_tokens")
    op.drop_table("blacklisted_tokens")
    op.drop_index("idx_hidden_nfts_user", table_name="hidden_nfts")
    op.drop_table("hidden_nfts")
    op.drop_index("idx_hidden_tokens_user", table_name="hidden_tokens")
    op.drop_table("hidden_tokens")
    op.drop_index("idx_tips_status_created", table_name="tips")
    op.drop_index("idx_tips_to_user", table_name="tips")
    op.drop_index("idx_tips_from_user", table_name="tips")
    op.drop_table("tips")
    op.drop_index("idx_tokens_contract", table_name="tokens")
    op.drop_table("tokens")
    op.drop_table("profiles")
    op.drop_index("idx_user_sessions_user", table_name="user_sessions")
    op.drop_table("user_sessions")
    op.drop_table("users")
