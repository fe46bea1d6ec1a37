"""
services/expense_source.py — Read-only access to the expense/split store.

These are the ONLY sanctioned queries for balance purposes. Everything the
balance core needs from the database comes through here, already converted
from NUMERIC to integer cents:

  fetch_expenses_with_splits()  flat expense ⟕ split join, active expenses only
  fetch_group_members()         ids of current (active) members
  fetch_member_names()          display names for response enrichment
  fetch_group_ledger()          existence check + both reads above, in one call
  ensure_group_exists()         GROUP_NOT_FOUND (404)
  require_group_member()        GROUP_NOT_FOUND (404) or FORBIDDEN (403), HTTP layer only

Layer rules:
  - No Flask imports. Receives group_id and a SQLAlchemy Session.
  - Any SQLAlchemyError is logged and re-raised as DataSourceError (503).
    Nothing here retries; retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from divvy.app.errors import AppError, DataSourceError, ErrorCode
from divvy.app.ledger import ExpenseSplitRow
from divvy.app.models.expense import Expense
from divvy.app.models.group import Group
from divvy.app.models.membership import Membership
from divvy.app.models.split import Split
from divvy.app.models.user import User
from divvy.app.money import to_cents

logger = logging.getLogger(__name__)


@contextmanager
def _reading(what: str, group_id: int) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Failed to read %s for group %s", what, group_id, exc_info=True)
        raise DataSourceError(
            f"Could not read {what} for group {group_id}. Please try again later."
        ) from exc


def ensure_group_exists(group_id: int, session: Session) -> None:
    with _reading("group", group_id):
        group = session.get(Group, group_id)

    if group is None:
        raise DataSourceError(
            f"Group {group_id} does not exist.",
            code=ErrorCode.GROUP_NOT_FOUND,
            http_status=404,
        )


def require_group_member(group_id: int, user_id: int, session: Session) -> None:
    """
    Raises FORBIDDEN (403) unless user_id is a current member of group_id.

    Access control for the HTTP layer. The balance core itself never checks
    who is asking. A current membership implies the group exists, so the
    group itself is only looked up for non-members: an unknown group is
    reported as GROUP_NOT_FOUND (404) rather than FORBIDDEN.
    """
    with _reading("memberships", group_id):
        membership = session.execute(
            select(Membership.id).where(
                Membership.group_id == group_id,
                Membership.user_id == user_id,
                Membership.is_active.is_(True),
            )
        ).scalar_one_or_none()

    if membership is None:
        ensure_group_exists(group_id, session)
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )


def fetch_expenses_with_splits(group_id: int, session: Session) -> list[ExpenseSplitRow]:
    """
    Returns one row per (active expense, split) pair in the group.

    LEFT OUTER JOIN: an expense without splits still produces a single row
    with member_id=None so its payer is credited. Soft-deleted expenses are
    excluded. Rows are ordered by (expense_id, member_id).
    """
    stmt = (
        select(
            Expense.id,
            Expense.paid_by_user_id,
            Expense.amount,
            Split.user_id,
            Split.amount.label("split_amount"),
        )
        .select_from(Expense)
        .outerjoin(Split, Split.expense_id == Expense.id)
        .where(
            Expense.group_id == group_id,
            Expense.deleted_at.is_(None),
        )
        .order_by(Expense.id, Split.user_id)
    )

    with _reading("expenses", group_id):
        result = session.execute(stmt).all()

    return [
        ExpenseSplitRow(
            expense_id=expense_id,
            payer_id=payer_id,
            total_cents=to_cents(total),
            member_id=member_id,
            owed_cents=to_cents(owed) if owed is not None else 0,
        )
        for expense_id, payer_id, total, member_id, owed in result
    ]


def fetch_group_members(group_id: int, session: Session) -> list[int]:
    """Returns the user ids of all current (active) members of a group."""
    stmt = (
        select(Membership.user_id)
        .where(
            Membership.group_id == group_id,
            Membership.is_active.is_(True),
        )
        .order_by(Membership.user_id)
    )
    with _reading("memberships", group_id):
        return list(session.execute(stmt).scalars().all())


def fetch_member_names(group_id: int, session: Session) -> dict[int, str]:
    """
    Returns {user_id: username} for everyone who can appear in a balance
    list of the group: members past and present, payers, and split
    participants.
    """
    member_ids = select(Membership.user_id).where(Membership.group_id == group_id)
    payer_ids = select(Expense.paid_by_user_id).where(Expense.group_id == group_id)
    participant_ids = (
        select(Split.user_id)
        .join(Expense, Split.expense_id == Expense.id)
        .where(Expense.group_id == group_id)
    )
    stmt = select(User.id, User.username).where(
        or_(
            User.id.in_(member_ids),
            User.id.in_(payer_ids),
            User.id.in_(participant_ids),
        )
    )

    with _reading("member names", group_id):
        rows = session.execute(stmt).all()

    return {user_id: username for user_id, username in rows}


def fetch_group_ledger(
        group_id: int,
        session: Session,
) -> tuple[list[ExpenseSplitRow], list[int]]:
    """
    Returns (rows, current member ids) for an existing group.

    The single entry point the balance services read through, so a request
    checks the group's existence once.

    Raises:
        DataSourceError(GROUP_NOT_FOUND, 404)          -- group does not exist.
        DataSourceError(DATA_SOURCE_UNAVAILABLE, 503)  -- store unreadable.
    """
    ensure_group_exists(group_id, session)
    return (
        fetch_expenses_with_splits(group_id, session),
        fetch_group_members(group_id, session),
    )
