"""Initial schema: users, groups, memberships, expenses, splits.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only: never edit this file once it has run against a database.
Schema changes go in a new revision.

Creation order follows FK dependencies:
  users → groups → memberships → expenses → splits, then indexes
  (including the partial index idx_expenses_active).

ON DELETE policies:
  memberships.*       → RESTRICT  (cannot delete user/group with members)
  expenses.*          → RESTRICT  (cannot delete group/user with expenses)
  splits.expense_id   → CASCADE   (splits owned by expense)
  splits.user_id      → RESTRICT  (cannot delete user with splits)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    # Owned by the identity service; only id and username are read here.

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
    )

    # ── groups ─────────────────────────────────────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── memberships ────────────────────────────────────────────────────────
    # A member who leaves keeps the row: is_active = FALSE, left_at set.

    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_memberships_user"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_memberships_group"),
            nullable=False,
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("TRUE"),
        ),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
        sa.CheckConstraint(
            "left_at IS NULL OR left_at >= joined_at",
            name="ck_memberships_left_after_joined",
        ),
    )

    # ── expenses ───────────────────────────────────────────────────────────
    # deleted_at IS NULL = active; non-null = soft-deleted.

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_expenses_group"),
            nullable=False,
        ),
        sa.Column(
            "paid_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_expenses_payer"),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    # ── splits ─────────────────────────────────────────────────────────────
    # Zero shares are allowed. sum(splits) == expense.amount is not enforced
    # here; the validate endpoint reports expenses that break it.

    op.create_table(
        "splits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_splits_expense"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_splits_user"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_splits"),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        sa.CheckConstraint("amount >= 0", name="ck_splits_amount_non_negative"),
    )

    # ── Indexes ────────────────────────────────────────────────────────────

    op.create_index("ix_memberships_group_id", "memberships", ["group_id"])
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])
    # Only active rows: the balance read always filters deleted_at IS NULL.
    op.create_index(
        "idx_expenses_active",
        "expenses",
        ["group_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    op.create_index("ix_splits_expense_id", "splits", ["expense_id"])


def downgrade() -> None:
    """Local development reset only. Production takes corrective revisions."""
    op.drop_index("ix_splits_expense_id",    table_name="splits")
    op.drop_index("idx_expenses_active",     table_name="expenses")
    op.drop_index("ix_expenses_group_id",    table_name="expenses")
    op.drop_index("ix_memberships_user_id",  table_name="memberships")
    op.drop_index("ix_memberships_group_id", table_name="memberships")

    op.drop_table("splits")
    op.drop_table("expenses")
    op.drop_table("memberships")
    op.drop_table("groups")
    op.drop_table("users")
