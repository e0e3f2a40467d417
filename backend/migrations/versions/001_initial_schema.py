"""Initial schema — accounts, groups, transactions, ledger and drafts.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only: never edit this file once it has run against a database. Any
change to the schema goes into a new revision.

Creation order:
  1. split_mode_enum
  2. users, refresh_tokens, friends
  3. groups, memberships, group_join_links
  4. tags, transactions, transaction_balances, transaction_tags
  5. group_balances
  6. transaction_drafts, transaction_draft_balances, draft_tags

ON DELETE policies:
  refresh_tokens.user_id               → CASCADE
  friends.*                            → CASCADE
  memberships.*                        → RESTRICT
  group_join_links.group_id            → CASCADE
  transactions.*                       → RESTRICT
  transaction_balances.transaction_id  → CASCADE
  group_balances.group_id              → CASCADE
  transaction_drafts.user_id           → CASCADE
  transaction_drafts.group_id          → SET NULL
  tag link tables                      → CASCADE

group_balances holds one row per (group, pair, currency) with the pair
stored as user_id < friend_user_id; a row whose balance reaches zero is
deleted, never kept at 0.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


_split_mode = postgresql.ENUM(
    "direct", "equal", "custom",
    name="split_mode_enum",
    create_type=False,
)


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def upgrade() -> None:
    op.execute("CREATE TYPE split_mode_enum AS ENUM ('direct', 'equal', 'custom')")

    # ── Accounts ───────────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("photo", sa.String(256), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_refresh_tokens_user"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_refresh_tokens"),
        sa.UniqueConstraint("token_hash", name="uq_refresh_tokens_hash"),
    )
    op.create_index("idx_refresh_tokens_user", "refresh_tokens", ["user_id"])

    op.create_table(
        "friends",
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_friends_user"),
            nullable=False,
        ),
        sa.Column(
            "friend_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_friends_friend"),
            nullable=False,
        ),
        sa.Column("remark", sa.String(256), nullable=True),
        sa.PrimaryKeyConstraint("user_id", "friend_user_id", name="pk_friends"),
        sa.CheckConstraint("user_id <> friend_user_id", name="ck_friends_not_self"),
    )

    # ── Groups ─────────────────────────────────────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("photo", sa.String(256), nullable=True),
        sa.Column(
            "owner_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_groups_owner"),
            nullable=False,
        ),
        sa.Column("members_id_hash", sa.String(64), nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_activity_time", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
    )
    op.create_index("idx_groups_members_id_hash", "groups", ["members_id_hash"])

    op.create_table(
        "memberships",
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_memberships_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_memberships_user"),
            nullable=False,
        ),
        _created_at("joined_at"),
        sa.PrimaryKeyConstraint("group_id", "user_id", name="pk_memberships"),
    )
    op.create_index("idx_memberships_user", "memberships", ["user_id"])

    op.create_table(
        "group_join_links",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_group_join_links_group"),
            nullable=False,
        ),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_group_join_links_creator"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_group_join_links"),
    )
    op.create_index("idx_group_join_links_group", "group_join_links", ["group_id"])

    # ── Transactions ───────────────────────────────────────────────────────

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("icon", sa.String(256), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_tags"),
        sa.UniqueConstraint("name", name="uq_tags_name"),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_transactions_group"),
            nullable=False,
        ),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_transactions_creator"),
            nullable=False,
        ),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("icon", sa.String(256), nullable=False, server_default=""),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("split_mode", _split_mode, nullable=False, server_default="direct"),
        sa.Column("transaction_time", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("geo_coordinate", sa.String(128), nullable=True),
        sa.Column("photo", sa.String(256), nullable=True),
        # Optimistic concurrency token, bumped by the ORM on every UPDATE.
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_transactions"),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_transactions_name_nonempty"),
        sa.CheckConstraint("LENGTH(currency) = 3", name="ck_transactions_currency_len"),
    )
    op.create_index("idx_transactions_group", "transactions", ["group_id"])
    op.create_index(
        "idx_transactions_group_time",
        "transactions",
        ["group_id", sa.text("transaction_time DESC")],
    )

    op.create_table(
        "transaction_balances",
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="CASCADE", name="fk_transaction_balances_txn"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_transaction_balances_user"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("transaction_id", "user_id", name="pk_transaction_balances"),
    )

    op.create_table(
        "transaction_tags",
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="CASCADE", name="fk_transaction_tags_txn"),
            nullable=False,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE", name="fk_transaction_tags_tag"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("transaction_id", "tag_id", name="pk_transaction_tags"),
    )

    # ── Ledger ─────────────────────────────────────────────────────────────

    op.create_table(
        "group_balances",
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_group_balances_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_group_balances_user"),
            nullable=False,
        ),
        sa.Column(
            "friend_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_group_balances_friend"),
            nullable=False,
        ),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint(
            "group_id", "user_id", "friend_user_id", "currency",
            name="pk_group_balances",
        ),
        sa.CheckConstraint("user_id < friend_user_id", name="ck_group_balances_canonical_pair"),
        sa.CheckConstraint("balance <> 0", name="ck_group_balances_nonzero"),
    )

    # ── Drafts ─────────────────────────────────────────────────────────────

    op.create_table(
        "transaction_drafts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_transaction_drafts_user"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="SET NULL", name="fk_transaction_drafts_group"),
            nullable=True,
        ),
        sa.Column("name", sa.String(256), nullable=True),
        sa.Column("icon", sa.String(256), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("transaction_time", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("geo_coordinate", sa.String(128), nullable=True),
        sa.Column("photo", sa.String(256), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_transaction_drafts"),
    )
    op.create_index("idx_transaction_drafts_user", "transaction_drafts", ["user_id"])

    op.create_table(
        "transaction_draft_balances",
        sa.Column(
            "draft_id",
            sa.Integer(),
            sa.ForeignKey(
                "transaction_drafts.id",
                ondelete="CASCADE",
                name="fk_transaction_draft_balances_draft",
            ),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_transaction_draft_balances_user"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("draft_id", "user_id", name="pk_transaction_draft_balances"),
    )

    op.create_table(
        "draft_tags",
        sa.Column(
            "draft_id",
            sa.Integer(),
            sa.ForeignKey("transaction_drafts.id", ondelete="CASCADE", name="fk_draft_tags_draft"),
            nullable=False,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE", name="fk_draft_tags_tag"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("draft_id", "tag_id", name="pk_draft_tags"),
    )


def downgrade() -> None:
    """Local resets only. Production moves forward with corrective revisions."""
    op.drop_table("draft_tags")
    op.drop_table("transaction_draft_balances")
    op.drop_index("idx_transaction_drafts_user", table_name="transaction_drafts")
    op.drop_table("transaction_drafts")

    op.drop_table("group_balances")

    op.drop_table("transaction_tags")
    op.drop_table("transaction_balances")
    op.drop_index("idx_transactions_group_time", table_name="transactions")
    op.drop_index("idx_transactions_group", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("tags")

    op.drop_index("idx_group_join_links_group", table_name="group_join_links")
    op.drop_table("group_join_links")
    op.drop_index("idx_memberships_user", table_name="memberships")
    op.drop_table("memberships")
    op.drop_index("idx_groups_members_id_hash", table_name="groups")
    op.drop_table("groups")

    op.drop_table("friends")
    op.drop_index("idx_refresh_tokens_user", table_name="refresh_tokens")
    op.drop_table("refresh_tokens")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS split_mode_enum")
